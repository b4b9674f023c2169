"""
AI-powered donation tax advisor using Google Gemini.
Answers chat questions with the user's calculator inputs and results as context,
and cleans up advisor replies before they are shown.
"""
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Any, Tuple

import google.generativeai as genai

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your AI tax advisor. I can help you understand tax implications, "
    "donation strategies, and answer any questions about tax planning. "
    "How can I assist you today?"
)

FALLBACK_RESPONSE = "I apologize, but I could not generate a response."

SYSTEM_PROMPT = """You are an AI tax strategy advisor for a tax calculator application.

IMPORTANT INSTRUCTIONS:
1. Always use the user's actual input values from the calculator when providing examples and calculations
2. If the user has entered specific values (income, tax rate, donation amount, filing status), reference these exact numbers in your responses
3. If calculation results are available, use those exact figures rather than doing your own calculations
4. Remember previous parts of the conversation and build upon them - don't start fresh each time
5. If the user mentions specific numbers (like "my tax bracket is 35%"), remember and use those numbers in all subsequent responses
6. Be consistent with calculations and references throughout the conversation
7. When calculator inputs or results are provided, prioritize using those over generic examples

Provide accurate, helpful information about tax planning, charitable giving, and investment strategies. Only include educational disclaimers when providing specific tax or financial advice that could impact someone's financial decisions."""

QUICK_PROMPTS = {
    'section351': (
        "Please explain Section 351 of the tax code and how it can benefit me "
        "with tax savings through charitable donations."
    ),
    'pri_returns': (
        "What are Program-Related Investments (PRIs) and what kind of returns "
        "can I expect from them?"
    ),
}

MAX_USAGE_HISTORY = 50


class APIError:
    """Common API error types, messages and HTTP statuses"""
    RATE_LIMIT = "rate_limit"
    INVALID_KEY = "invalid_key"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    NOT_CONFIGURED = "not_configured"
    UNKNOWN_ERROR = "unknown_error"

    MESSAGES = {
        RATE_LIMIT: "AI service is temporarily unavailable due to high demand. Please try again in a moment.",
        INVALID_KEY: "AI service authentication failed. Please contact support.",
        NETWORK_ERROR: "Unable to connect to AI service. Please check your connection and try again.",
        TIMEOUT: "Request timed out. Please try asking a shorter question.",
        INVALID_REQUEST: "There was an issue processing your request. Please try rephrasing your question.",
        NOT_CONFIGURED: "Gemini API key is not configured",
        UNKNOWN_ERROR: "I apologize, but I encountered an error. Please try again.",
    }

    STATUS_CODES = {
        RATE_LIMIT: 429,
        INVALID_KEY: 401,
        NETWORK_ERROR: 503,
        TIMEOUT: 408,
        INVALID_REQUEST: 400,
        NOT_CONFIGURED: 500,
        UNKNOWN_ERROR: 500,
    }

    @staticmethod
    def get_user_message(error_type: Optional[str]) -> str:
        """Get user-friendly error messages"""
        return APIError.MESSAGES.get(error_type, APIError.MESSAGES[APIError.UNKNOWN_ERROR])

    @staticmethod
    def get_status_code(error_type: Optional[str]) -> int:
        return APIError.STATUS_CODES.get(error_type, 500)


def _format_number(value: Any) -> Optional[str]:
    """Format a text or numeric amount with thousands separators, None if unusable"""
    if value is None or value == '':
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return f"{amount:,.2f}".rstrip('0').rstrip('.')


def build_calculator_context(calculator_context: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Summarise calculator inputs and results for the advisor.

    Args:
        calculator_context: {"inputs": {...}, "result": {...}} with camelCase keys

    Returns:
        Context block, or None if there is nothing to report
    """
    if not calculator_context:
        return None

    inputs = calculator_context.get('inputs')
    result = calculator_context.get('result')
    if not inputs and not result:
        return None

    lines = ["Current calculator context:"]

    if inputs:
        income = _format_number(inputs.get('annualIncome'))
        donation = _format_number(inputs.get('donationAmount'))
        tax_rate = inputs.get('currentTaxRate')
        lines.append(f"- Annual Income: {'$' + income if income else 'Not entered'}")
        lines.append(f"- Filing Status: {inputs.get('filingStatus') or 'Not selected'}")
        lines.append(f"- Tax Rate: {str(tax_rate) + '%' if tax_rate else 'Not entered'}")
        lines.append(f"- Donation Amount: {'$' + donation if donation else 'Not entered'}")

    if result:
        savings = _format_number(result.get('estimatedTaxSavings'))
        net_cost = _format_number(result.get('netCostOfDonation'))
        rate = result.get('effectiveDeductionRate')
        lines.append("")
        lines.append("Calculation Results:")
        lines.append(f"- Estimated Tax Savings: ${savings or 'N/A'}")
        lines.append(f"- Net Cost of Donation: ${net_cost or 'N/A'}")
        lines.append(f"- Effective Deduction Rate: {rate if rate is not None else 'N/A'}%")

    lines.append("")
    lines.append("Use these exact values when answering questions. Don't recalculate - use the provided results.")
    return "\n".join(lines)


def to_gemini_history(conversation_history: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert chat messages to Gemini contents.

    Only user and assistant turns are kept and the conversation is started at the
    first user turn, so a leading greeting from the assistant is dropped.
    """
    contents = []
    for message in conversation_history:
        role = message.get('role') if isinstance(message, dict) else None
        if role not in ('user', 'assistant'):
            continue
        if not contents and role == 'assistant':
            continue
        contents.append({
            'role': 'model' if role == 'assistant' else 'user',
            'parts': [str(message.get('content', ''))],
        })
    return contents


_INTRO_MARKERS = ("i'm your ai", "i am your ai", "hello! i'm", "hi! i'm")

_PROFESSIONAL_PHRASES = (
    'consult with a tax professional', 'consult with a professional',
    'consult a tax professional', 'consulting a professional',
    'should always consult', 'always consult with',
    'financial advisor', 'tax advisor', 'tax professional',
    'discuss it with a financial', 'discuss with a professional',
    'speak with a professional', 'advisable to consult',
    'recommend consulting', 'would recommend consulting',
    'finding a financial advisor', 'find a professional',
    'reach a financial advisor',
)

_PROFESSIONAL_PAIRS = (
    ('consult', 'professional'),
    ('discuss', 'advisor'),
    ('speak', 'professional'),
)

_DISCLAIMER_PATTERNS = [
    # previously appended booking sentence
    re.compile(r"To consult with our tax professionals, \[click here\]\([^)]*\) to book a call with us\.", re.IGNORECASE),
    re.compile(r"[^.!?]*(?:you should always|always|should)\s+consult[^.!?]*professional[^.!?]*[.!?]", re.IGNORECASE),
    re.compile(r"[^.!?]*(?:important to|advisable to|recommend)\s+(?:consult|discuss)[^.!?]*(?:professional|advisor)[^.!?]*[.!?]", re.IGNORECASE),
    re.compile(r"[^.!?]*discuss it with[^.!?]*advisor[^.!?]*[.!?]", re.IGNORECASE),
    re.compile(r"[^.!?]*(?:Please note)[^.!?]*(?:financial decisions)[^.!?]*[.!?]", re.IGNORECASE),
    re.compile(r"[^.!?]*(?:This information should not)[^.!?]*[.!?]", re.IGNORECASE),
    re.compile(r"[^.!?]*(?:Always do your own research)[^.!?]*[.!?]", re.IGNORECASE),
]

_REFERRAL_REQUESTS = (
    'talk to a professional', 'consult a professional',
    'recommend a tax professional', 'find a tax professional',
)


def booking_sentence(booking_url: str) -> str:
    return f"To consult with our tax professionals, [click here]({booking_url}) to book a call with us."


def referral_response(booking_url: str) -> str:
    """Direct answer for users asking to speak with a professional"""
    return (
        f"{booking_sentence(booking_url)} Our team can provide personalized advice "
        "tailored to your specific tax situation."
    )


def is_intro_message(message: str) -> bool:
    lower = message.lower()
    if any(marker in lower for marker in _INTRO_MARKERS):
        return True
    return 'how can i assist you' in lower and len(lower) < 150


def mentions_professional(message: str) -> bool:
    lower = message.lower()
    if any(phrase in lower for phrase in _PROFESSIONAL_PHRASES):
        return True
    return any(a in lower and b in lower for a, b in _PROFESSIONAL_PAIRS)


def is_professional_request(message: str) -> bool:
    """True when the user asks to be put in touch with a tax professional"""
    lower = message.lower()
    return any(phrase in lower for phrase in _REFERRAL_REQUESTS)


def format_advisor_message(message: str, booking_url: str) -> str:
    """
    Replace professional-consultation disclaimers with a single booking link.

    Greeting messages and messages that never mention a professional are
    returned unchanged.
    """
    if is_intro_message(message) or not mentions_professional(message):
        return message

    cleaned = message
    for pattern in _DISCLAIMER_PATTERNS:
        cleaned = pattern.sub('', cleaned)

    cleaned = re.sub(r"\s+", ' ', cleaned)
    cleaned = re.sub(r"\.+", '.', cleaned)
    cleaned = cleaned.strip()

    if cleaned and not cleaned.endswith(('.', '!', '?')):
        cleaned += '.'

    return f"{cleaned} {booking_sentence(booking_url)}".strip()


class TaxAdvisor:
    """Gemini chat advisor for charitable donation tax questions"""

    AVAILABLE_MODELS = {
        'gemini-2.5-pro': 'Gemini 2.5 Pro (Most Powerful)',
        'gemini-2.5-flash': 'Gemini 2.5 Flash (Fast & Efficient)',
        'gemini-2.0-flash': 'Gemini 2.0 Flash',
        'gemini-2.0-flash-lite': 'Gemini 2.0 Flash-Lite (Lightweight)',
    }

    GENERATION_CONFIG = {
        'max_output_tokens': 1000,
        'temperature': 0.7,
    }

    def __init__(self, api_key: Optional[str] = None, model_name: str = 'gemini-2.5-flash'):
        """
        Initialize the advisor.

        Args:
            api_key: Google API key for Gemini. If empty, chat is disabled.
            model_name: Name of the Gemini model to use.
        """
        self.api_key = api_key or None
        self.model_name = model_name
        self.usage_history: List[Dict[str, Any]] = []
        self.is_available = self.api_key is not None

        if self.is_available:
            genai.configure(api_key=self.api_key)

    @staticmethod
    def looks_like_api_key(api_key: Optional[str]) -> bool:
        """Gemini API keys are issued with an AIza prefix"""
        return bool(api_key) and api_key.startswith('AIza')

    def _create_system_instruction(self, calculator_context: Optional[Dict[str, Any]]) -> str:
        context_block = build_calculator_context(calculator_context)
        if context_block:
            return f"{SYSTEM_PROMPT}\n\n{context_block}"
        return SYSTEM_PROMPT

    def chat(self,
             conversation_history: List[Dict[str, Any]],
             calculator_context: Optional[Dict[str, Any]] = None) -> Tuple[Optional[str], Optional[str]]:
        """
        Answer the latest user message in a conversation.

        Args:
            conversation_history: [{"role": "user"|"assistant", "content": "..."}]
            calculator_context: Calculator inputs and results to ground the answer

        Returns:
            Tuple of (response text, error_type) or (None, error_type)
        """
        if not self.is_available:
            return None, APIError.NOT_CONFIGURED

        try:
            model = genai.GenerativeModel(
                self.model_name,
                system_instruction=self._create_system_instruction(calculator_context),
                generation_config=self.GENERATION_CONFIG,
            )
            response = model.generate_content(to_gemini_history(conversation_history))

            usage_info = self._extract_usage_metadata(response)
            if usage_info:
                self._track_usage(usage_info)

            text = getattr(response, 'text', None)
            if not text:
                return FALLBACK_RESPONSE, None
            return text.strip(), None

        except Exception as e:
            error_type = self._classify_error(e)
            logger.warning("Advisor chat failed (%s): %s", error_type, e)
            return None, error_type

    def _classify_error(self, error: Exception) -> str:
        """Classify API errors into user-facing categories"""
        if isinstance(error, TimeoutError):
            return APIError.TIMEOUT
        if isinstance(error, ConnectionError):
            return APIError.NETWORK_ERROR

        error_str = str(error).lower()

        if "api key" in error_str or "unauthorized" in error_str or "401" in error_str or "403" in error_str:
            return APIError.INVALID_KEY
        elif "quota" in error_str or "rate limit" in error_str or "429" in error_str:
            return APIError.RATE_LIMIT
        elif "timeout" in error_str or "deadline" in error_str:
            return APIError.TIMEOUT
        elif "network" in error_str or "connection" in error_str:
            return APIError.NETWORK_ERROR
        elif "model" in error_str or "invalid" in error_str:
            return APIError.INVALID_REQUEST
        else:
            return APIError.UNKNOWN_ERROR

    def _extract_usage_metadata(self, response) -> Optional[Dict[str, Any]]:
        """Extract usage metadata from Gemini response"""
        usage = getattr(response, 'usage_metadata', None)
        if not usage:
            return None
        return {
            'prompt_tokens': getattr(usage, 'prompt_token_count', 0),
            'completion_tokens': getattr(usage, 'candidates_token_count', 0),
            'total_tokens': getattr(usage, 'total_token_count', 0),
            'model': self.model_name,
            'timestamp': datetime.now(),
        }

    def _track_usage(self, usage_info: Dict[str, Any]):
        """Record usage, keeping only the most recent entries"""
        self.usage_history.append(usage_info)
        if len(self.usage_history) > MAX_USAGE_HISTORY:
            self.usage_history = self.usage_history[-MAX_USAGE_HISTORY:]

    def get_usage_summary(self) -> Dict[str, Any]:
        """Get summary of AI usage for display"""
        today = datetime.now().date()
        tokens_today = sum(
            usage.get('total_tokens', 0) for usage in self.usage_history
            if usage['timestamp'].date() == today
        )
        return {
            'total_requests': len(self.usage_history),
            'tokens_today': tokens_today,
            'models_used': sorted({usage.get('model', 'unknown') for usage in self.usage_history}),
            'last_request_tokens': self.usage_history[-1].get('total_tokens', 0) if self.usage_history else 0,
        }

    @staticmethod
    def get_available_models() -> Dict[str, str]:
        """Get dictionary of available models for UI selection"""
        return TaxAdvisor.AVAILABLE_MODELS.copy()


def handle_chat_request(payload: Any, advisor: TaxAdvisor) -> Tuple[int, Dict[str, Any]]:
    """
    Chat request boundary.

    Args:
        payload: {"conversationHistory": [...], "calculatorContext": {...}}
        advisor: Configured TaxAdvisor

    Returns:
        (status_code, response_body)
    """
    history = payload.get('conversationHistory') if isinstance(payload, dict) else None
    if not history or not isinstance(history, list):
        return 400, {'error': "Conversation history is required"}

    if not advisor.is_available:
        logger.error("Gemini API key is not configured")
        return 500, {'error': APIError.get_user_message(APIError.NOT_CONFIGURED)}

    if not advisor.looks_like_api_key(advisor.api_key):
        logger.error("Gemini API key appears to be invalid format")
        return 500, {'error': "Gemini API key is invalid format"}

    response, error_type = advisor.chat(history, payload.get('calculatorContext'))
    if error_type:
        return APIError.get_status_code(error_type), {'message': APIError.get_user_message(error_type)}

    return 200, {'message': response}
