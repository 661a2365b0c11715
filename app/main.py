"""
Streamlit Dashboard for Personal Ledger

The day-to-day interface: pick a month, see where the money went, record
income and expenses, and keep the PDF reports of past months.

DESIGN PRINCIPLES:
1. One month at a time, chosen in the sidebar
2. Every write goes through the same flows as the HTTP API
3. Errors are shown in plain language next to the form that caused them
4. Nothing is saved without an explicit button press
"""

import asyncio
import base64
from datetime import date
from uuid import UUID

import streamlit as st

from ledger.audit import create_correlation_id
from ledger.config import validate_all_settings
from ledger.models.finance import ExpenseType, ExpenseUpdate
from ledger.models.series import MonthKey
from ledger.orchestrator import AppComponents, create_app_components
from ledger.services.reports import ObjectStoreError
from ledger.services.storage import InMemoryLedgerStorage, StorageError
from ledger.validation import LedgerValidationError, get_user_friendly_summary


st.set_page_config(
    page_title="Personal Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components()
    except StorageError as e:
        st.error(f"Database unavailable, using a temporary in-memory ledger: {e}")
        return create_app_components(
            storage=InMemoryLedgerStorage(),
            use_external_services=False,
        )


def show_error(error: Exception) -> None:
    if isinstance(error, LedgerValidationError):
        st.error(get_user_friendly_summary(error))
    else:
        st.error(f"Something went wrong: {error}")


def money(value) -> str:
    return f"{float(value):,.2f}"


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Personal Ledger")
    st.sidebar.markdown("---")

    today = date.today()
    year = st.sidebar.number_input("Year", min_value=2000, max_value=2100, value=today.year, step=1)
    month = st.sidebar.selectbox(
        "Month",
        options=list(range(1, 13)),
        index=today.month - 1,
        format_func=lambda m: MONTH_NAMES[m - 1],
    )
    period = MonthKey(int(year), int(month))

    st.sidebar.markdown("---")
    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Expenses", "💵 Income", "📄 Reports", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard_page(components, period)
    elif page == "🧾 Expenses":
        render_expenses_page(components, period)
    elif page == "💵 Income":
        render_income_page(components, period)
    elif page == "📄 Reports":
        render_reports_page(components, period)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_dashboard_page(components: AppComponents, period: MonthKey):
    """Render the monthly overview."""
    st.title(f"📊 {MONTH_NAMES[period.month - 1]} {period.year}")

    user = components.default_user
    payload = run_async(components.summary.dashboard(user, period.year, period.month))
    summary = payload.summary

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Income**")
        st.markdown(f'<p class="big-number">{money(summary.total_income)}</p>', unsafe_allow_html=True)
    with col2:
        st.markdown("**Expenses**")
        st.markdown(f'<p class="big-number">{money(summary.total_expenses)}</p>', unsafe_allow_html=True)
    with col3:
        st.markdown("**Balance**")
        st.markdown(f'<p class="big-number">{money(summary.balance)}</p>', unsafe_allow_html=True)

    st.caption(
        f"Fixed: {money(summary.fixed_expenses)} · "
        f"Variable: {money(summary.variable_expenses)} · "
        f"{summary.expenses_count} expenses"
    )

    st.markdown("---")
    st.subheader("By category")
    if not summary.by_category:
        st.info("No expenses recorded for this month yet.")
        return

    st.bar_chart(summary.category_totals())
    st.dataframe(
        [
            {
                "Category": f"{item.category_icon or ''} {item.category_name}".strip(),
                "Total": item.total,
                "Count": item.count,
                "Share (%)": round(item.percentage, 1),
            }
            for item in summary.by_category
        ],
        use_container_width=True,
    )


def render_expenses_page(components: AppComponents, period: MonthKey):
    """Render the expense list and the add-expense form."""
    st.title("🧾 Expenses")

    user = components.default_user
    categories = run_async(components.categories.list_unique(user))
    expenses = run_async(components.expenses.list_for_period(user, period.year, period.month))
    names = {category.id: category.name for category in categories}

    if expenses:
        for expense in expenses:
            col1, col2, col3, col4 = st.columns([4, 2, 2, 1])
            with col1:
                label = expense.description or names.get(expense.category_id, "Uncategorized")
                series = " 🔁" if expense.group_id else ""
                st.markdown(f"**{label}**{series}  \n{names.get(expense.category_id, 'Uncategorized')}")
            with col2:
                st.markdown(f"{money(expense.amount)}  \n_{expense.type.value}_")
            with col3:
                paid = st.checkbox("Paid", value=expense.paid, key=f"paid-{expense.id}")
                if paid != expense.paid:
                    run_async(components.expenses.set_paid(user, [expense.id], paid))
                    st.rerun()
            with col4:
                if st.button("🗑️", key=f"delete-{expense.id}"):
                    run_async(components.expenses.delete(user, expense.id))
                    st.rerun()
    else:
        st.info("No expenses for this month.")

    st.markdown("---")
    st.subheader("Add expense")

    with st.form("add-expense"):
        col1, col2 = st.columns(2)
        with col1:
            options = [None] + [category.id for category in categories]
            category_id = st.selectbox(
                "Category",
                options=options,
                format_func=lambda cid: "➕ New category" if cid is None else names[cid],
            )
            new_category = st.text_input("New category name", help="Used when 'New category' is selected")
            description = st.text_input("Description")
        with col2:
            expense_type = st.radio(
                "Type",
                options=list(ExpenseType),
                format_func=lambda t: t.value.title(),
                horizontal=True,
            )
            amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
            months = st.number_input(
                "Repeat for months (fixed only)", min_value=1, max_value=120, value=1, step=1,
            )

        submitted = st.form_submit_button("✅ Save", type="primary")

    if submitted:
        end = period
        for _ in range(int(months) - 1):
            end = end.next()
        try:
            result = run_async(components.expenses.create_series(
                user,
                expense_type=expense_type,
                amount=str(amount),
                start=period,
                end=end,
                category_id=category_id,
                category_name=new_category,
                description=description,
                correlation_id=create_correlation_id(),
            ))
            st.success(f"Saved {len(result.created)} expense(s).")
            st.rerun()
        except (LedgerValidationError, StorageError) as e:
            show_error(e)

    fixed = [expense for expense in expenses if expense.type == ExpenseType.FIXED]
    if fixed:
        st.markdown("---")
        st.subheader("Edit a fixed expense")
        target = st.selectbox(
            "Expense",
            options=fixed,
            format_func=lambda e: f"{e.description or names.get(e.category_id, 'Uncategorized')} ({money(e.amount)})",
        )
        new_amount = st.number_input(
            "New amount", min_value=0.0, step=0.01, format="%.2f", value=float(target.amount),
        )
        apply_to_series = st.checkbox("Apply to this and the following months", value=bool(target.group_id))
        until = st.number_input("Until (months from now)", min_value=1, max_value=120, value=1, step=1)
        if st.button("💾 Update"):
            try:
                if apply_to_series:
                    end = period
                    for _ in range(int(until) - 1):
                        end = end.next()
                    run_async(components.expenses.update_series(
                        user,
                        expense_id=target.id,
                        category_id=target.category_id,
                        expense_type=target.type,
                        amount=str(new_amount),
                        start=period,
                        end=end,
                        description=target.description,
                    ))
                else:
                    run_async(components.expenses.update(
                        user, target.id, ExpenseUpdate(amount=str(new_amount)),
                    ))
                st.rerun()
            except (LedgerValidationError, StorageError) as e:
                show_error(e)


def render_income_page(components: AppComponents, period: MonthKey):
    """Render the income form for the selected month or a range."""
    st.title("💵 Income")

    user = components.default_user
    current = run_async(components.income.get(user, period.year, period.month))
    if current:
        st.markdown(f"Current income: **{money(current.amount)}** {current.description or ''}")
    else:
        st.info("No income recorded for this month.")

    with st.form("income"):
        amount = st.number_input(
            "Amount",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            value=float(current.amount) if current else 0.0,
        )
        description = st.text_input("Description", value=(current.description or "") if current else "")
        months = st.number_input("Apply to months", min_value=1, max_value=120, value=1, step=1)
        submitted = st.form_submit_button("✅ Save", type="primary")

    if submitted:
        try:
            if months == 1:
                run_async(components.income.upsert(
                    user, period.year, period.month, str(amount), description or None,
                ))
            else:
                end = period
                for _ in range(int(months) - 1):
                    end = end.next()
                run_async(components.income.upsert_range(
                    user, period, end, str(amount), description or None,
                ))
            st.success("Income saved.")
            st.rerun()
        except (LedgerValidationError, StorageError) as e:
            show_error(e)


def render_reports_page(components: AppComponents, period: MonthKey):
    """Render the stored reports and the upload form."""
    st.title("📄 Reports")

    user = components.default_user
    reports = run_async(components.reports.list_for_user(user))

    if reports:
        for report in reports:
            col1, col2 = st.columns([5, 1])
            with col1:
                st.markdown(
                    f"[{MONTH_NAMES[report.month - 1]} {report.year}]({report.file_url})"
                )
            with col2:
                if st.button("🗑️", key=f"report-{report.id}"):
                    run_async(components.reports.delete(user, report.id))
                    st.rerun()
    else:
        st.info("No reports yet.")

    st.markdown("---")
    st.subheader(f"Upload report for {MONTH_NAMES[period.month - 1]} {period.year}")
    uploaded = st.file_uploader("PDF report", type=["pdf"])
    if uploaded and st.button("📤 Upload", type="primary"):
        content = base64.b64encode(uploaded.read()).decode("ascii")
        try:
            run_async(components.reports.generate(user, period.year, period.month, content))
            st.success("Report stored.")
            st.rerun()
        except (LedgerValidationError, StorageError, ObjectStoreError) as e:
            show_error(e)


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Database", "database"),
        ("Cloudinary (Report storage)", "cloudinary"),
        ("Google Sheets (Audit trail)", "google_sheets"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )

    st.markdown("---")
    st.markdown("### Audit Trail")
    st.caption("Every event of one action shares a correlation id, found in the logs or the audit sheet.")
    raw_id = st.text_input("Correlation ID")
    if raw_id:
        try:
            correlation_id = UUID(raw_id.strip())
        except ValueError:
            st.error("Not a valid correlation ID.")
            return
        try:
            events = run_async(components.audit_logger.get_trail(correlation_id))
        except StorageError as e:
            show_error(e)
            return
        if not events:
            st.info("No stored events for this ID. Is the audit sheet configured?")
        else:
            st.dataframe(
                [
                    {
                        "Time": event.timestamp.isoformat(),
                        "Event": event.event_type.value,
                        "Severity": event.severity.value,
                        "Details": event.description,
                    }
                    for event in events
                ],
                use_container_width=True,
            )


if __name__ == "__main__":
    main()
