"""
Finance Assistant

DESIGN DECISION: The chat model never writes to the ledger itself.
It answers with structured function calls (addExpense, addAsset, addDebt,
addGoal); each call is turned into a record payload here and handed back
to the caller, which applies it through the same mutation path as a
form submission. Validation, defaults and auditing are therefore
identical for both entry points.

CRITICAL BOUNDARIES:

1. CHAT:
   - CAN: Explain the user's numbers, suggest repayment strategies
   - CAN: Request new records through the four tools
   - CANNOT: Update or delete records
   - CANNOT: Bypass validation (a rejected record is reported back to it)

2. ANALYSIS:
   - CAN: Produce a Markdown report FROM the ledger snapshot
   - CANNOT: Change anything

The numbers the model sees are computed here, deterministically.
It never has to add up the ledger on its own.
"""

import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, Field
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import GeminiSettings, get_settings
from src.models.ledger import (
    AssetType,
    Currency,
    ExpenseFrequency,
    Ledger,
    RecordKind,
    new_record_id,
)
from src.services.aggregation import compute_currency_totals, compute_metrics
from src.services.currency import CurrencyLike, RateTable
from src.services.mutations import MutationError

logger = structlog.get_logger(__name__)


class AssistantError(Exception):
    """Base exception for the assistant."""
    pass


class UnknownActionError(AssistantError):
    """The model called a tool we do not offer."""
    pass


# =============================================================================
# TOOL DECLARATIONS
# =============================================================================

ADD_EXPENSE = {
    "name": "addExpense",
    "description": "Add a new expense transaction. Use this when user wants to log spending.",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING", "description": "Description of the expense"},
            "amount": {"type": "NUMBER", "description": "Amount of money spent"},
            "currency": {"type": "STRING", "description": "Currency code (USD, EUR, RUB, etc.)"},
            "category": {"type": "STRING", "description": "Category (Food, Rent, Transport, etc.)"},
            "frequency": {
                "type": "STRING",
                "description": "Frequency: Monthly, Weekly, or Yearly. Default to Monthly if unsure but recurring.",
            },
        },
        "required": ["title", "amount", "currency", "category"],
    },
}

ADD_ASSET = {
    "name": "addAsset",
    "description": "Add a new income source or asset balance adjustment.",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING", "description": "Title of income (Salary, Bonus)"},
            "amount": {"type": "NUMBER", "description": "Amount received"},
            "currency": {"type": "STRING", "description": "Currency code"},
            "type": {
                "type": "STRING",
                "description": 'Type: "Income" for regular earnings, "Balance" for one-time adjustments',
            },
        },
        "required": ["title", "amount", "currency", "type"],
    },
}

ADD_DEBT = {
    "name": "addDebt",
    "description": "Add a new debt or loan record.",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING", "description": "Name of the debt (e.g. Mortgage, Credit Card)"},
            "source": {"type": "STRING", "description": "Lender or source (Bank name, Person name)"},
            "totalAmount": {"type": "NUMBER", "description": "Total amount borrowed"},
            "currency": {"type": "STRING", "description": "Currency code"},
        },
        "required": ["title", "totalAmount", "currency"],
    },
}

ADD_GOAL = {
    "name": "addGoal",
    "description": "Create a new financial goal.",
    "parameters": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING", "description": "Goal name (e.g. Buy Car)"},
            "targetAmount": {"type": "NUMBER", "description": "Target amount to save"},
            "currency": {"type": "STRING", "description": "Currency code"},
        },
        "required": ["title", "targetAmount", "currency"],
    },
}

ASSISTANT_TOOLS = [
    {"function_declarations": [ADD_EXPENSE, ADD_ASSET, ADD_DEBT, ADD_GOAL]}
]

# Currency used when the model leaves it out.
FALLBACK_CURRENCY = Currency.RUB


# =============================================================================
# ACTIONS
# =============================================================================

class AssistantAction(BaseModel):
    """One function call requested by the model."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class AssistantReply(BaseModel):
    """Result of one chat turn."""

    text: str = ""
    actions: list[AssistantAction] = Field(
        default_factory=list,
        description="Actions that were applied to the ledger"
    )
    errors: list[str] = Field(
        default_factory=list,
        description="Actions that were rejected, with the reason"
    )
    failed: bool = False


ActionHandler = Callable[[AssistantAction], Awaitable[str]]


def _currency_arg(args: dict) -> str:
    value = args.get("currency")
    if not value:
        return FALLBACK_CURRENCY.value
    return str(value).strip().upper()


def _choice(value: Any, enum_cls, default):
    """Match an enum value case-insensitively, else the default."""
    if value:
        wanted = str(value).strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted:
                return member.value
        logger.warning(
            "assistant_value_defaulted",
            field=enum_cls.__name__,
            value=str(value),
            default=default.value,
        )
    return default.value


def action_to_record(action: AssistantAction, now: datetime) -> tuple[RecordKind, dict]:
    """
    Turn a tool call into a record payload ready for apply_mutation.

    Fills the defaults the tools leave out: a fresh id and the current
    time, Monthly frequency, Income type, the full amount still owed,
    nothing saved yet toward a goal.

    Raises:
        UnknownActionError: If the tool name is not one we declared
    """
    args = action.args
    base = {
        "id": new_record_id(),
        "date": now.isoformat(),
        "title": args.get("title"),
        "currency": _currency_arg(args),
    }

    if action.name == "addExpense":
        return RecordKind.EXPENSE, {
            **base,
            "amount": args.get("amount"),
            "category": args.get("category") or "",
            "frequency": _choice(
                args.get("frequency"), ExpenseFrequency, ExpenseFrequency.MONTHLY
            ),
        }

    if action.name == "addAsset":
        return RecordKind.ASSET, {
            **base,
            "amount": args.get("amount"),
            "type": _choice(args.get("type"), AssetType, AssetType.INCOME),
        }

    if action.name == "addDebt":
        total = args.get("totalAmount")
        return RecordKind.DEBT, {
            **base,
            "source": args.get("source") or "Unknown",
            "totalAmount": total,
            "remainingAmount": total,
            "isInstallment": False,
        }

    if action.name == "addGoal":
        return RecordKind.GOAL, {
            **base,
            "targetAmount": args.get("targetAmount"),
            "currentAmount": 0,
        }

    raise UnknownActionError(f"Unknown assistant action: {action.name}")


# =============================================================================
# CONTEXT
# =============================================================================

def build_financial_context(
    ledger: Ledger,
    rates: RateTable,
    display_currency: CurrencyLike,
    now: Optional[datetime] = None,
) -> str:
    """
    JSON snapshot of the ledger plus the headline numbers.

    Goes into the system instruction so the model can quote real figures.
    """
    metrics = compute_metrics(ledger, rates, display_currency, now)
    snapshot = {
        "displayCurrency": metrics.currency.value,
        "metrics": {
            "netWorth": round(metrics.net_worth, 2),
            "totalDebt": round(metrics.total_debt, 2),
            "projectedBalance": round(metrics.projected_balance, 2),
            "monthlyResult": round(metrics.monthly_result, 2),
            "spendingByCategory": {
                c.category: round(c.amount, 2) for c in metrics.category_breakdown
            },
        },
        "totalsByCurrency": compute_currency_totals(ledger),
        "exchangeRates": dict(rates),
        "debts": [d.model_dump(mode="json", by_alias=True) for d in ledger.debts],
        "expenses": [e.model_dump(mode="json", by_alias=True) for e in ledger.expenses],
        "assets": [a.model_dump(mode="json", by_alias=True) for a in ledger.assets],
        "goals": [g.model_dump(mode="json", by_alias=True) for g in ledger.goals],
    }
    return json.dumps(snapshot, ensure_ascii=False)


_CHAT_INSTRUCTION = """You are FinanceBot, a helpful and smart personal finance assistant.
You have access to the user's current financial data below.
Reply in the language the user writes in.
ALWAYS refer to the user's actual numbers, debts and goals when answering.

User's financial context (amounts in the display currency unless stated):
{context}

You have tools for adding income, expenses, debts and goals.
If the user asks to add something or sends a list of spending or income, use the matching tools.
If the user sends a list, call a tool for each item.

If the user asks about paying off a debt, explain the pros and cons for their specific situation.
If the user asks about currency exchange, give general advice but warn that rates fluctuate.
Be brief, helpful and friendly."""

_ANALYSIS_PROMPT = """You are an experienced financial advisor. Analyze the following financial data in JSON format.

Data:
{context}

Write a detailed report in Markdown including:
1. **Financial health score**: a score from 0 to 100 based on the debt-to-income ratio and savings.
2. **Debt repayment strategy**: propose a plan (snowball or avalanche), naming the specific debts.
3. **Goal feasibility**: assess whether the goals are realistic given current income and expenses.
4. **Recommendations**: 3 concrete steps to improve the situation.

Keep the tone encouraging but professional. Use ONLY the data above."""

CHAT_FALLBACK = "Something went wrong while processing your request. Please try again."
ANALYSIS_FALLBACK = "Could not generate the analysis right now. Please check your API key."

# Errors worth another attempt; anything else fails the turn immediately.
_TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)

_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)


def _function_calls(response) -> list:
    calls = []
    for part in getattr(response, "parts", None) or []:
        call = getattr(part, "function_call", None)
        if call is not None and getattr(call, "name", ""):
            calls.append(call)
    return calls


def _response_text(response) -> str:
    try:
        return (response.text or "").strip()
    except ValueError:
        # No text part (e.g. only function calls or a blocked response)
        return ""


class FinanceAssistant:
    """
    Gemini chat with function calling over the user's ledger.

    RESPONSIBILITIES:
    - Keep one chat session whose system instruction holds the ledger
    - Turn function calls into AssistantActions for the caller to apply
    - Feed the outcome of each action back to the model

    BOUNDARIES:
    - NEVER touches the ledger directly
    - Gives up after `max_tool_rounds` consecutive rounds of tool calls
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        max_tool_rounds: Optional[int] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._max_tool_rounds = (
            max_tool_rounds or get_settings().app.assistant_max_tool_rounds
        )
        self._chat = None
        genai.configure(api_key=self._settings.api_key)

    def _generation_config(self) -> dict:
        return {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
        }

    @property
    def has_session(self) -> bool:
        return self._chat is not None

    def start_session(self, context: str) -> None:
        """Open a new chat whose system instruction carries `context`."""
        model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config=self._generation_config(),
            system_instruction=_CHAT_INSTRUCTION.format(context=context),
            tools=ASSISTANT_TOOLS,
        )
        self._chat = model.start_chat()
        logger.info("assistant_session_started", model=self._settings.model_name)

    def reset_session(self) -> None:
        self._chat = None

    @_retry_transient
    async def _send(self, content):
        return await self._chat.send_message_async(content)

    async def _run_action(
        self,
        action: AssistantAction,
        on_action: ActionHandler,
        reply: AssistantReply,
    ) -> dict:
        """Apply one action through the caller; report the outcome to the model."""
        try:
            message = await on_action(action)
        except (AssistantError, MutationError) as e:
            logger.warning("assistant_action_rejected", action=action.name, error=str(e))
            reply.errors.append(f"{action.name}: {e}")
            return {"error": str(e)}
        reply.actions.append(action)
        return {"result": message}

    async def send_message(self, text: str, on_action: ActionHandler) -> AssistantReply:
        """
        Send one user message and run the function-call loop.

        Args:
            text: What the user typed
            on_action: Applies an action, returns a short result message;
                raises MutationError/AssistantError to reject it

        Returns:
            AssistantReply. On failure `failed` is set and `text` is a
            fallback message; actions applied before the failure stay applied.
        """
        if self._chat is None:
            raise AssistantError("No chat session. Call start_session() first.")

        reply = AssistantReply()
        try:
            response = await self._send(text)
            calls = _function_calls(response)
            rounds = 0
            while calls:
                if rounds >= self._max_tool_rounds:
                    logger.warning("assistant_tool_rounds_exhausted", rounds=rounds)
                    reply.text = (
                        f"I stopped after {rounds} rounds of changes. "
                        "Please check the records and ask again if something is missing."
                    )
                    return reply
                rounds += 1

                response_parts = []
                for call in calls:
                    action = AssistantAction(name=call.name, args=dict(call.args or {}))
                    result = await self._run_action(action, on_action, reply)
                    response_parts.append(
                        genai.protos.Part(
                            function_response=genai.protos.FunctionResponse(
                                name=action.name,
                                response=result,
                            )
                        )
                    )

                response = await self._send(response_parts)
                calls = _function_calls(response)

            reply.text = _response_text(response) or "Done."
        except Exception as e:
            logger.error(
                "assistant_chat_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            reply.text = CHAT_FALLBACK
            reply.failed = True
        return reply

    @_retry_transient
    async def _generate(self, prompt: str):
        model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config=self._generation_config(),
        )
        return await model.generate_content_async(prompt)

    async def analyze_finances(
        self,
        ledger: Ledger,
        rates: RateTable,
        display_currency: CurrencyLike,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Full Markdown report: health score, repayment plan, goals, next steps.

        Returns a fallback message instead of raising.
        """
        context = build_financial_context(ledger, rates, display_currency, now)
        try:
            response = await self._generate(_ANALYSIS_PROMPT.format(context=context))
        except Exception as e:
            logger.error(
                "assistant_analysis_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ANALYSIS_FALLBACK
        return _response_text(response) or ANALYSIS_FALLBACK


__all__ = [
    "ASSISTANT_TOOLS",
    "ActionHandler",
    "AssistantAction",
    "AssistantError",
    "AssistantReply",
    "FinanceAssistant",
    "UnknownActionError",
    "action_to_record",
    "build_financial_context",
]
