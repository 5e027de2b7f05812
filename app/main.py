"""
Streamlit Frontend for Business Manager

This is the screen the owner uses every day to keep the books of a
small business: customer credit, chit groups, household spending and
loans.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every total is recomputed from the records on each page load
3. Clear error messages in simple language
4. Visual feedback for all operations
5. The lottery winner is only saved after an explicit "Confirm"

The lottery draw runs inside the page: the controller is stepped with
`advance()` and the displayed name is redrawn until the draw settles.
"""

import asyncio
import time
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import streamlit as st
from pydantic import ValidationError

from business_manager.config import get_settings, validate_all_settings
from business_manager.lottery import DrawPhase, LotteryController
from business_manager.models import (
    ChitStatus,
    HouseholdEntryType,
    LoanStatus,
    LoanType,
    NotificationSeverity,
    TransactionType,
)
from business_manager.orchestrator import (
    ChitFlow,
    LedgerFlow,
    build_report,
    create_app_components,
)
from business_manager.services import NotificationCenter, StorageError


# Page configuration
st.set_page_config(
    page_title="Business Manager",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .draw-box {
        padding: 30px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
        text-align: center;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(get_settings())


def money(amount) -> str:
    return get_settings().app.format_amount(amount)


def parse_amount(raw: str) -> Optional[Decimal]:
    try:
        amount = Decimal(raw.replace(",", "").strip()).quantize(Decimal("0.01"))
    except (InvalidOperation, AttributeError):
        return None
    return amount if amount > 0 else None


def render_notifications(notifications: NotificationCenter):
    """Show unexpired notifications. Each expires on its own or can be dismissed."""
    show = {
        NotificationSeverity.SUCCESS: st.success,
        NotificationSeverity.INFO: st.info,
        NotificationSeverity.WARNING: st.warning,
        NotificationSeverity.ERROR: st.error,
    }
    for notification in notifications.active():
        message_col, close_col = st.columns([12, 1])
        with message_col:
            show[notification.severity](notification.message)
        with close_col:
            if st.button("✕", key=f"dismiss_{notification.id}", help="Dismiss"):
                notifications.dismiss(notification.id)
                st.rerun()


def main():
    """Main application entry point."""
    chit_flow, ledger_flow, notifications = get_components()

    # Sidebar navigation
    st.sidebar.title("📒 Business Manager")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🪙 Chits",
            "🧾 Daily Business",
            "🏠 Household",
            "🏦 Loans",
            "📊 Summary Report",
            "⚙️ Settings",
        ],
        index=0,
    )

    render_notifications(notifications)

    # Route to appropriate page
    if page == "🪙 Chits":
        render_chits_page(chit_flow)
    elif page == "🧾 Daily Business":
        render_business_page(ledger_flow)
    elif page == "🏠 Household":
        render_household_page(ledger_flow)
    elif page == "🏦 Loans":
        render_loans_page(ledger_flow)
    elif page == "📊 Summary Report":
        render_summary_page(chit_flow, ledger_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


# =============================================================================
# CHITS
# =============================================================================

def render_chits_page(chit_flow: ChitFlow):
    """Render the chit groups list, or one group's details."""
    if st.session_state.get("chit_group_id"):
        render_chit_details(chit_flow, UUID(st.session_state.chit_group_id))
        return

    st.title("🪙 Chit Groups")

    try:
        overviews = run_async(chit_flow.list_group_overviews())
    except StorageError as e:
        st.error(f"Could not load chit groups: {e}")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Collected", money(sum((s.group.amount_collected for _, s in overviews), Decimal("0"))))
    col2.metric("Total Given", money(sum((s.group.amount_given for _, s in overviews), Decimal("0"))))
    col3.metric("Total Savings", money(sum((s.group.savings for _, s in overviews), Decimal("0"))))

    st.markdown("---")

    for group, summary in overviews:
        cols = st.columns([3, 2, 2, 2, 2, 1])
        cols[0].markdown(f"**{group.name}**  \n{group.members_count} members · {group.status.value}")
        cols[1].write(money(group.total_value))
        cols[2].write(money(summary.group.amount_collected))
        cols[3].write(money(summary.group.amount_given))
        cols[4].write(money(summary.group.savings))
        if cols[5].button("Open", key=f"open_{group.id}"):
            st.session_state.chit_group_id = str(group.id)
            st.rerun()

    if not overviews:
        st.info("No chit groups yet. Add your first group below.")

    with st.expander("➕ Add Chit Group"):
        with st.form("add_chit_group", clear_on_submit=True):
            name = st.text_input("Group name")
            total_value = st.text_input("Total value", value="100000")
            members_count = st.number_input("Members", min_value=1, value=10)
            duration = st.number_input("Duration (months)", min_value=1, value=10)
            start_date = st.date_input("Start date", value=date.today())
            if st.form_submit_button("Save Group", type="primary"):
                amount = parse_amount(total_value)
                if amount is None:
                    st.error("Please enter a valid total value.")
                else:
                    try:
                        run_async(chit_flow.create_group(
                            name=name,
                            total_value=amount,
                            members_count=int(members_count),
                            duration_months=int(duration),
                            start_date=start_date,
                        ))
                        st.rerun()
                    except (ValidationError, StorageError) as e:
                        st.error(f"Could not save group: {e}")


def get_lottery_controller(chit_flow: ChitFlow, group_id: UUID) -> LotteryController:
    """One controller per open group, kept across reruns."""
    key = f"lottery_{group_id}"
    if key not in st.session_state:
        controller = chit_flow.lottery_controller()
        run_async(controller.open(group_id))
        st.session_state[key] = controller
    return st.session_state[key]


def render_chit_details(chit_flow: ChitFlow, group_id: UUID):
    """Render one group: members, their ledgers and the lottery."""
    if st.button("← Back to groups"):
        st.session_state.chit_group_id = None
        st.rerun()

    controller = get_lottery_controller(chit_flow, group_id)
    group = controller.group
    if group is None:
        st.error("This chit group could not be loaded.")
        return

    st.title(f"🪙 {group.name}")
    summary = controller.summary

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Value", money(group.total_value))
    col2.metric("Collected", money(summary.group.amount_collected))
    col3.metric("Given", money(summary.group.amount_given))
    col4.metric("Savings", money(summary.group.savings))

    render_lottery(controller)

    st.markdown("### Members")
    for member in controller.members:
        totals = summary.for_member(member.id)
        with st.expander(f"{member.name} · {member.lottery_status.value}"):
            c1, c2, c3 = st.columns(3)
            c1.metric("Given", money(totals.total_given))
            c2.metric("Received", money(totals.total_received))
            c3.metric("Last Transaction", str(totals.last_transaction_date or "-"))
            render_member_ledger(chit_flow, controller, member)

    with st.expander("➕ Add Member"):
        with st.form(f"add_member_{group_id}", clear_on_submit=True):
            name = st.text_input("Name")
            phone = st.text_input("Phone")
            email = st.text_input("Email")
            address = st.text_area("Address")
            if st.form_submit_button("Save Member", type="primary"):
                try:
                    run_async(chit_flow.add_member(group_id, name, phone, email, address))
                    run_async(controller.refresh())
                    st.rerun()
                except (ValidationError, StorageError) as e:
                    st.error(f"Could not add member: {e}")

    if group.status == ChitStatus.ONGOING and st.button("Mark group as Completed"):
        try:
            run_async(chit_flow.update_group(group.model_copy(update={"status": ChitStatus.COMPLETED})))
            run_async(controller.open(group_id))
            st.rerun()
        except StorageError as e:
            st.error(f"Could not update group: {e}")


def render_member_ledger(chit_flow: ChitFlow, controller: LotteryController, member):
    try:
        transactions, _ = run_async(chit_flow.member_ledger(member))
    except StorageError as e:
        st.error(f"Could not load transactions: {e}")
        return

    for tx in transactions:
        cols = st.columns([2, 2, 2, 4, 1])
        cols[0].write(str(tx.date))
        cols[1].write(tx.type.value)
        cols[2].write(money(tx.amount))
        cols[3].write(tx.description or "-")
        if cols[4].button("🗑️", key=f"del_tx_{tx.id}"):
            try:
                run_async(chit_flow.delete_transaction(tx.id))
                run_async(controller.refresh())
                st.rerun()
            except StorageError as e:
                st.error(f"Could not delete transaction: {e}")

    with st.form(f"add_tx_{member.id}", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        on = c1.date_input("Date", value=date.today())
        raw_amount = c2.text_input("Amount")
        tx_type = c3.selectbox("Type", list(TransactionType), format_func=lambda t: t.value)
        description = st.text_input("Description")
        if st.form_submit_button("Add Transaction"):
            amount = parse_amount(raw_amount)
            if amount is None:
                st.error("Please enter a valid amount.")
                return
            try:
                run_async(chit_flow.add_transaction(member.id, on, amount, tx_type, description))
                run_async(controller.refresh())
                st.rerun()
            except (ValidationError, StorageError) as e:
                st.error(f"Could not add transaction: {e}")


def render_lottery(controller: LotteryController):
    """Participant checkboxes, the animated draw and the confirm step."""
    st.markdown("### 🎲 Lottery Draw")

    if controller.pending_payout is not None:
        st.error(
            f"{controller.pending_payout.member_name} is marked as Won but the "
            "payment record was not saved."
        )
        if st.button("Retry saving payment", type="primary"):
            run_async(controller.retry_payout_record())
            st.rerun()

    eligible = controller.eligible_members
    if not eligible:
        st.info("Every member has already won. No eligible participants.")
        return

    if controller.phase == DrawPhase.IDLE:
        c1, c2 = st.columns(2)
        if c1.button("Select All"):
            controller.select_all()
            st.rerun()
        if c2.button("Select None"):
            controller.select_none()
            st.rerun()

        for member in eligible:
            checked = st.checkbox(
                member.name,
                value=controller.is_selected(member.id),
                key=f"pick_{member.id}",
            )
            if checked != controller.is_selected(member.id):
                controller.toggle(member.id)

        st.caption(f"{len(controller.selected_members)} of {len(eligible)} selected")
        if st.button("Start Draw", type="primary"):
            if run_async(controller.start_draw()) is None:
                st.rerun()

    display = st.empty()

    # Spin in place until the draw settles
    while controller.phase in (DrawPhase.FAST_SPIN, DrawPhase.SLOW_SPIN):
        display.markdown(
            f'<div class="draw-box"><div class="big-number">{controller.displayed_name}</div></div>',
            unsafe_allow_html=True,
        )
        deadline = controller.next_deadline
        if deadline is not None:
            time.sleep(max(0.0, deadline - time.monotonic()))
        controller.advance()

    if controller.phase == DrawPhase.SETTLED:
        display.markdown(
            f'<div class="draw-box"><p>Winner</p>'
            f'<div class="big-number">🎉 {controller.displayed_name}</div></div>',
            unsafe_allow_html=True,
        )
        c1, c2 = st.columns(2)
        if c1.button("Confirm Winner", type="primary", disabled=not controller.can_confirm):
            run_async(controller.confirm_winner())
            st.rerun()
        if c2.button("Close"):
            run_async(controller.close())
            st.rerun()


# =============================================================================
# DAILY BUSINESS
# =============================================================================

def render_business_page(ledger_flow: LedgerFlow):
    st.title("🧾 Daily Business")

    try:
        customers = run_async(ledger_flow.list_customers())
        balances = run_async(ledger_flow.customer_balances())
    except StorageError as e:
        st.error(f"Could not load customers: {e}")
        return

    for customer in customers:
        with st.expander(f"{customer.name} · balance {money(balances.get(customer.id, 0))}"):
            transactions = run_async(ledger_flow.list_customer_transactions(customer.id))
            for tx in transactions:
                cols = st.columns([2, 2, 2, 4, 1])
                cols[0].write(str(tx.date))
                cols[1].write(tx.type.value)
                cols[2].write(money(tx.amount))
                cols[3].write(tx.description or "-")
                if cols[4].button("🗑️", key=f"del_ctx_{tx.id}"):
                    run_async(ledger_flow.delete_customer_transaction(tx.id))
                    st.rerun()

            with st.form(f"add_ctx_{customer.id}", clear_on_submit=True):
                c1, c2, c3 = st.columns(3)
                on = c1.date_input("Date", value=date.today())
                raw_amount = c2.text_input("Amount")
                tx_type = c3.selectbox("Type", list(TransactionType), format_func=lambda t: t.value)
                description = st.text_input("Description")
                if st.form_submit_button("Add Transaction"):
                    amount = parse_amount(raw_amount)
                    if amount is None:
                        st.error("Please enter a valid amount.")
                    else:
                        try:
                            run_async(ledger_flow.add_customer_transaction(
                                customer.id, on, amount, tx_type, description
                            ))
                            st.rerun()
                        except (ValidationError, StorageError) as e:
                            st.error(f"Could not add transaction: {e}")

    with st.expander("➕ Add Customer"):
        with st.form("add_customer", clear_on_submit=True):
            name = st.text_input("Name")
            phone = st.text_input("Phone")
            if st.form_submit_button("Save Customer", type="primary"):
                try:
                    run_async(ledger_flow.add_customer(name, phone))
                    st.rerun()
                except (ValidationError, StorageError) as e:
                    st.error(f"Could not add customer: {e}")


# =============================================================================
# HOUSEHOLD
# =============================================================================

def render_household_page(ledger_flow: LedgerFlow):
    st.title("🏠 Household")

    try:
        entries = run_async(ledger_flow.list_household_entries())
    except StorageError as e:
        st.error(f"Could not load entries: {e}")
        return

    for entry in entries:
        cols = st.columns([2, 4, 2, 2, 2, 1])
        cols[0].write(str(entry.date))
        cols[1].write(entry.description)
        cols[2].write(entry.category)
        cols[3].write(entry.type.value)
        cols[4].write(money(entry.amount))
        if cols[5].button("🗑️", key=f"del_hh_{entry.id}"):
            run_async(ledger_flow.delete_household_entry(entry.id))
            st.rerun()

    with st.form("add_household", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        on = c1.date_input("Date", value=date.today())
        raw_amount = c2.text_input("Amount")
        entry_type = c3.selectbox("Type", list(HouseholdEntryType), format_func=lambda t: t.value)
        description = st.text_input("Description")
        category = st.text_input("Category", value="Other")
        if st.form_submit_button("Add Entry", type="primary"):
            amount = parse_amount(raw_amount)
            if amount is None:
                st.error("Please enter a valid amount.")
            else:
                try:
                    run_async(ledger_flow.add_household_entry(
                        on, description, amount, entry_type, category
                    ))
                    st.rerun()
                except (ValidationError, StorageError) as e:
                    st.error(f"Could not add entry: {e}")


# =============================================================================
# LOANS
# =============================================================================

def render_loans_page(ledger_flow: LedgerFlow):
    st.title("🏦 Loans")

    try:
        loans = run_async(ledger_flow.list_loans())
    except StorageError as e:
        st.error(f"Could not load loans: {e}")
        return

    for loan in loans:
        with st.expander(
            f"{loan.name} · {loan.type.value} · {loan.status.value} · balance {money(loan.balance)}"
        ):
            c1, c2, c3 = st.columns(3)
            c1.metric("Principal", money(loan.principal))
            c2.metric("Paid", money(loan.paid))
            c3.metric("Balance", money(loan.balance))
            if loan.status == LoanStatus.ACTIVE:
                with st.form(f"pay_{loan.id}", clear_on_submit=True):
                    raw_amount = st.text_input("Payment amount")
                    if st.form_submit_button("Record Payment"):
                        amount = parse_amount(raw_amount)
                        try:
                            if amount is None:
                                raise ValueError("Please enter a valid amount.")
                            run_async(ledger_flow.record_loan_payment(loan.id, amount))
                            st.rerun()
                        except (ValueError, StorageError) as e:
                            st.error(str(e))
            if st.button("Delete loan", key=f"del_loan_{loan.id}"):
                run_async(ledger_flow.delete_loan(loan.id))
                st.rerun()

    with st.expander("➕ Add Loan"):
        with st.form("add_loan", clear_on_submit=True):
            name = st.text_input("Name")
            raw_principal = st.text_input("Principal")
            loan_type = st.selectbox("Type", list(LoanType), format_func=lambda t: t.value)
            if st.form_submit_button("Save Loan", type="primary"):
                principal = parse_amount(raw_principal)
                if principal is None:
                    st.error("Please enter a valid principal.")
                else:
                    try:
                        run_async(ledger_flow.add_loan(name, principal, loan_type))
                        st.rerun()
                    except (ValidationError, StorageError) as e:
                        st.error(f"Could not add loan: {e}")


# =============================================================================
# SUMMARY
# =============================================================================

def render_summary_page(chit_flow: ChitFlow, ledger_flow: LedgerFlow):
    st.title("📊 Summary Report")

    try:
        report = run_async(build_report(chit_flow, ledger_flow))
    except StorageError as e:
        st.error(f"Could not build the report: {e}")
        return

    st.markdown("### Daily Business")
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Given", money(report.business.total_given))
    c2.metric("Total Received", money(report.business.total_received))
    c3.metric("Balance", money(report.business.balance))

    st.markdown("### Chits (ongoing)")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Value", money(report.chits.total_value))
    c2.metric("Collected", money(report.chits.amount_collected))
    c3.metric("Given", money(report.chits.amount_given))
    c4.metric("Savings", money(report.chits.savings))

    st.markdown("### Household")
    c1, c2, c3 = st.columns(3)
    c1.metric("Income", money(report.household.total_income))
    c2.metric("Expenses", money(report.household.total_expenses))
    c3.metric("Net", money(report.household.net))

    st.markdown("### Loans")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Taken", money(report.loans.total_taken))
    c2.metric("Given", money(report.loans.total_given))
    c3.metric("To Pay", money(report.loans.balance_to_pay))
    c4.metric("To Receive", money(report.loans.balance_to_receive))

    st.markdown("---")
    st.bar_chart({
        "Income": [float(report.household.total_income)],
        "Expenses": [float(report.household.total_expenses)],
        "Chit Savings": [float(report.chits.savings)],
        "Business Balance": [float(report.business.balance)],
    })


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    app_settings = get_settings().app
    st.caption(f"Environment: {app_settings.app_environment}")

    status = validate_all_settings()

    sections = [
        ("Storage Backend", "storage"),
        ("Lottery Draw Timing", "draw"),
        ("Notifications", "notifications"),
        ("Application", "app"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in sections:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if app_settings.debug_mode:
        st.json(status)

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Settings come from environment variables or a `.env` file. "
        "Set `STORAGE_BACKEND=google_sheets` together with "
        "`GOOGLE_SHEETS_CREDENTIALS_PATH` and `GOOGLE_SHEETS_SPREADSHEET_ID` "
        "to keep the books in Google Sheets. Draw timing uses the "
        "`LOTTERY_` prefix, e.g. `LOTTERY_SETTLE_AFTER_SECONDS`."
    )


if __name__ == "__main__":
    main()
