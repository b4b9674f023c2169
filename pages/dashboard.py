"""
Dashboard page: donation tax calculator on the left, AI advisor chat on the right.
The calculator's quick-prompt buttons reach the chat through the session message bus.
"""
import streamlit as st
from typing import Any, Dict

from ai_advisor import (
    WELCOME_MESSAGE, QUICK_PROMPTS, TaxAdvisor, format_advisor_message,
    handle_chat_request, is_professional_request, referral_response
)
from charts import create_bracket_comparison_chart, create_savings_curve
from config_utils import (
    DEFAULT_APP_CONFIG, get_default_calculator_inputs, get_default_evaluation_inputs
)
from io_utils import (
    ESTIMATE_SAVINGS, EVALUATE_DONATION, export_breakdown_csv,
    format_currency, handle_calculation_request
)
from message_bus import CHAT_PROMPT_TOPIC, MessageBus
from tax import FILING_STATUS_LABELS, FilingStatus


def initialize_session_state():
    """Initialize session state variables with defaults"""
    defaults = {
        'chat_messages': [{'role': 'assistant', 'content': WELCOME_MESSAGE}],
        'pending_prompts': [],
        'calculator_inputs': get_default_calculator_inputs(),
        'calculator_result': None,
        'evaluation_inputs': get_default_evaluation_inputs(),
        'evaluation_result': None,
        'message_bus': MessageBus(),
    }

    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_config() -> Dict[str, Any]:
    return st.session_state.get('app_config', DEFAULT_APP_CONFIG)


def get_advisor() -> TaxAdvisor:
    """Reuse one advisor per session so usage tracking accumulates"""
    config = get_config()
    key = (config['gemini_api_key'], config['gemini_model'])
    if st.session_state.get('advisor_key') != key:
        st.session_state.advisor = TaxAdvisor(config['gemini_api_key'], config['gemini_model'])
        st.session_state.advisor_key = key
    return st.session_state.advisor


def queue_chat_prompt(message: str):
    """Message bus handler: hand a prompt to the chat panel"""
    st.session_state.pending_prompts.append(message)


def filing_status_select(label: str, current: str, key: str) -> str:
    options = [status.value for status in FilingStatus]
    return st.selectbox(
        label,
        options,
        index=options.index(current) if current in options else 0,
        format_func=lambda value: FILING_STATUS_LABELS[FilingStatus(value)],
        key=key,
    )


def render_savings_tab():
    """Tax calculator form and results"""
    inputs = st.session_state.calculator_inputs

    with st.form("savings_form"):
        annual_income = st.text_input("Annual Income", value=inputs['annualIncome'],
                                      placeholder="Enter your annual income")
        filing_status = filing_status_select("Filing Status", inputs['filingStatus'], "savings_status")
        current_tax_rate = st.text_input("Current Tax Rate (%)", value=inputs['currentTaxRate'],
                                         placeholder="Enter your current tax rate")
        donation_amount = st.text_input("Donation Amount", value=inputs['donationAmount'],
                                        placeholder="Enter planned donation amount")
        submitted = st.form_submit_button("Calculate Tax Savings", type="primary")

    if submitted:
        data = {
            'annualIncome': annual_income,
            'currentTaxRate': current_tax_rate,
            'donationAmount': donation_amount,
            'filingStatus': filing_status,
        }
        st.session_state.calculator_inputs = data
        status, body = handle_calculation_request({'type': ESTIMATE_SAVINGS, 'data': data})
        if status == 200:
            st.session_state.calculator_result = body
        else:
            st.session_state.calculator_result = None
            st.error(body['error'])

    result = st.session_state.calculator_result
    if not result:
        return

    col1, col2 = st.columns(2)
    col1.metric("Donation Amount", f"${result['donationAmount']:,.0f}")
    col2.metric("Estimated Tax Savings", f"${result['estimatedTaxSavings']:,}")
    col1, col2 = st.columns(2)
    col1.metric("Net Cost of Donation", f"${result['netCostOfDonation']:,}")
    rate = result['effectiveDeductionRate']
    col2.metric("Effective Deduction Rate", f"{rate:.2f}%" if rate is not None else "N/A")

    st.info(result['recommendation'])

    saved_inputs = st.session_state.calculator_inputs
    income = float(saved_inputs['annualIncome'])
    st.plotly_chart(
        create_bracket_comparison_chart(income, result['donationAmount'], saved_inputs['filingStatus']),
        use_container_width=True,
    )
    st.download_button(
        "Download Bracket Breakdown (CSV)",
        export_breakdown_csv(income, result['donationAmount'], saved_inputs['filingStatus']),
        file_name="bracket_breakdown.csv",
        mime="text/csv",
    )


def render_evaluation_tab():
    """Donation targeting form and results"""
    inputs = st.session_state.evaluation_inputs

    with st.form("evaluation_form"):
        target = st.text_input("Target Tax Savings", value=inputs['targetTaxSavings'],
                               placeholder="How much tax do you want to save?")
        annual_income = st.text_input("Annual Income", value=inputs['annualIncome'],
                                      placeholder="Enter your annual income")
        filing_status = filing_status_select("Filing Status", inputs['filingStatus'], "evaluation_status")
        deductions = st.text_input("Current Deductions", value=inputs['currentDeductions'],
                                   placeholder="Optional")
        submitted = st.form_submit_button("Find Donation Amount", type="primary")

    if submitted:
        data = {
            'targetTaxSavings': target,
            'annualIncome': annual_income,
            'filingStatus': filing_status,
            'currentDeductions': deductions,
        }
        st.session_state.evaluation_inputs = data
        status, body = handle_calculation_request({'type': EVALUATE_DONATION, 'data': data})
        if status == 200:
            st.session_state.evaluation_result = body
        else:
            st.session_state.evaluation_result = None
            st.error(body['error'])

    result = st.session_state.evaluation_result
    if not result:
        return

    col1, col2 = st.columns(2)
    col1.metric("Recommended Donation", f"${result['recommendedDonationAmount']:,}",
                help=f"Assumes a {result['estimatedMarginalRate']:.0%} marginal rate")
    col2.metric("Projected Tax Savings", f"${result['projectedTaxSavings']:,}",
                delta=f"{result['projectedTaxSavings'] - result['targetTaxSavings']:,.0f} vs target")
    col1, col2 = st.columns(2)
    col1.metric("Net Cost to You", f"${result['netCostToYou']:,}")
    col2.metric("Tax Liability", format_currency(result['newTaxLiability']),
                delta=f"-{format_currency(result['currentTaxLiability'] - result['newTaxLiability'])}",
                delta_color="inverse")

    if result['exactDonationAmount'] is not None:
        st.caption(f"Exact donation for this target: ${result['exactDonationAmount']:,}")
    else:
        st.caption("The target is larger than your current tax liability.")

    st.info(result['recommendation'])

    saved_inputs = st.session_state.evaluation_inputs
    st.plotly_chart(
        create_savings_curve(
            float(saved_inputs['annualIncome']),
            saved_inputs['filingStatus'],
            current_deductions=float(saved_inputs['currentDeductions'] or 0),
            target_savings=result['targetTaxSavings'],
            recommended_donation=result['recommendedDonationAmount'],
            exact_donation=result['exactDonationAmount'],
        ),
        use_container_width=True,
    )


def render_quick_prompt_tab(prompt_key: str, description: str, button_label: str):
    st.markdown(description)
    if st.button(button_label, key=f"quick_{prompt_key}"):
        st.session_state.message_bus.publish(CHAT_PROMPT_TOPIC, QUICK_PROMPTS[prompt_key])


def render_calculator_panel():
    st.subheader("🧮 Tax Calculator")
    tabs = st.tabs(["Tax Calculator", "Evaluate Donation Amount", "Explain Section 351", "Show PRI Returns"])

    with tabs[0]:
        render_savings_tab()
    with tabs[1]:
        render_evaluation_tab()
    with tabs[2]:
        render_quick_prompt_tab(
            'section351',
            "Learn how Section 351 transfers can support tax savings through charitable giving.",
            "Ask the AI Advisor about Section 351",
        )
    with tabs[3]:
        render_quick_prompt_tab(
            'pri_returns',
            "Understand Program-Related Investments and the returns they can offer.",
            "Ask the AI Advisor about PRI Returns",
        )


def send_chat_message(content: str):
    """Append a user message and the advisor's reply to the conversation"""
    messages = st.session_state.chat_messages
    messages.append({'role': 'user', 'content': content})
    booking_url = get_config()['booking_url']

    if is_professional_request(content):
        messages.append({'role': 'assistant', 'content': referral_response(booking_url)})
        return

    payload = {
        'conversationHistory': [{'role': m['role'], 'content': m['content']} for m in messages],
        'calculatorContext': {
            'inputs': st.session_state.calculator_inputs,
            'result': st.session_state.calculator_result,
        },
    }
    status, body = handle_chat_request(payload, get_advisor())

    if status == 200:
        reply = format_advisor_message(body['message'], booking_url)
    else:
        reply = body.get('message') or body.get('error') or f"Service error ({status}). Please try again."

    messages.append({'role': 'assistant', 'content': reply})


def render_chat_panel():
    st.subheader("💬 AI Tax Advisor")

    while st.session_state.pending_prompts:
        with st.spinner("Thinking..."):
            send_chat_message(st.session_state.pending_prompts.pop(0))

    with st.container(height=560):
        for message in st.session_state.chat_messages:
            with st.chat_message(message['role']):
                st.markdown(message['content'])

    if prompt := st.chat_input("Ask about tax strategies, donations, or your results..."):
        if prompt.strip():
            with st.spinner("Thinking..."):
                send_chat_message(prompt.strip())
            st.rerun()

    col1, col2 = st.columns([1, 3])
    with col1:
        if st.button("Reset conversation", key="reset_chat"):
            st.session_state.chat_messages = [{'role': 'assistant', 'content': WELCOME_MESSAGE}]
            st.rerun()
    with col2:
        advisor = st.session_state.get('advisor')
        if advisor and advisor.usage_history:
            usage = advisor.get_usage_summary()
            st.caption(f"AI requests: {usage['total_requests']} | Tokens today: {usage['tokens_today']:,}")


initialize_session_state()
st.session_state.message_bus.subscribe(CHAT_PROMPT_TOPIC, queue_chat_prompt, key="chat_panel")

left, right = st.columns(2)
with left:
    render_calculator_panel()
with right:
    render_chat_panel()
