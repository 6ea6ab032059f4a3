import base64
import json
import logging
import re

import pandas as pd
from openai import OpenAI, OpenAIError

from tripledger.core.config import settings
from tripledger.services.storage_service import content_type_for, file_extension

logger = logging.getLogger(__name__)

# Every provider is reached through its OpenAI-compatible chat endpoint
PROVIDERS = {
    "openai": {"base_url": None, "model": "gpt-4o"},
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "model": "gemini-2.0-flash",
    },
    "claude": {"base_url": "https://api.anthropic.com/v1/", "model": "claude-3-5-haiku-latest"},
    "openrouter": {
        "base_url": "https://openrouter.ai/api/v1",
        "model": "anthropic/claude-3-haiku",
        "headers": {"HTTP-Referer": "https://tripledger.app"},
    },
}

# Fallback order when a PDF arrives with a method that cannot read it
PDF_FALLBACK_ORDER = ("gemini", "openai", "claude", "openrouter")

TEMPLATES = ("general", "travel", "odometer")

PROMPTS = {
    "general": (
        "This is a general receipt (image or PDF). Extract all visible text. Then analyze for: "
        "date, vendor/business name (vendor), location, items purchased with prices (items array "
        "with name and price), total amount (total), and payment method (paymentMethod). "
        "Return ONLY a structured JSON object."
    ),
    "travel": (
        "You are extracting data from a travel expense receipt (image or PDF). Extract: "
        "Transaction Date (date as 'YYYY-MM-DD' if possible), Cost/Amount (cost as a number), "
        "Currency Code (currency, 3 letters like 'USD'), a concise Description/Purpose (description), "
        "Expense Type (type, e.g. Food, Transportation, Accommodation), Vendor Name (vendor) and "
        "Location (location). Return ONLY a valid JSON object with the fields: "
        "date, cost, currency, description, type, vendor, location."
    ),
    "odometer": (
        "This is an image of a car's odometer. Extract ONLY the numerical reading displayed. "
        "Ignore any other text or symbols (like 'km', 'miles', 'trip'). Return ONLY the number as "
        "plain text, e.g. '123456.7'. If you can return JSON, use the format {\"reading\": \"123456.7\"}."
    ),
}

# Aliases the vision models use for each form field
FIELD_ALIASES = {
    "date": ("date", "Date", "transactionDate", "TransactionDate"),
    "vendor": ("vendor", "Vendor", "business", "Business", "businessName", "BusinessName",
               "merchant", "Merchant"),
    "location": ("location", "Location", "address", "Address"),
    "currency": ("currency", "Currency", "currencyCode", "CurrencyCode"),
    "paymentMethod": ("paymentMethod", "PaymentMethod", "payment", "Payment"),
    "description": ("description", "Description", "purpose", "Purpose"),
    "type": ("type", "Type", "expenseType", "ExpenseType", "category", "Category"),
}
COST_KEYS = ("cost", "Cost", "total", "Total", "totalAmount", "TotalAmount", "amount", "Amount")
ITEMS_KEYS = ("items", "Items", "products", "Products", "lineItems", "LineItems")
READING_KEYS = ("reading", "odometer", "value", "number", "text")

FORM_FIELDS = ("date", "vendor", "location", "cost", "currency", "description", "type")

TYPE_KEYWORDS = (
    ("Transportation", ("airline", "flight", "taxi", "uber", "lyft", "train", "transit"),
     ("airlines", "air", "taxi", "uber", "lyft")),
    ("Accommodation", ("hotel", "inn", "motel", "resort", "airbnb", "lodging", "stay"),
     ("hotel", "inn", "motel", "resort")),
    ("Food", ("restaurant", "cafe", "coffee", "breakfast", "lunch", "dinner", "food", "meal"),
     ("restaurant", "cafe", "coffee")),
)

FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
JSON_OBJECT = re.compile(r"\{[\s\S]*?\}")
DATE_PATTERN = re.compile(r"\b(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})\b")
COST_PATTERNS = (
    re.compile(r"(?:total|amount|cost)[:\s]*\$?([0-9,]+\.[0-9]{2})", re.IGNORECASE),
    re.compile(r"[$€£]\s?([0-9,]+\.[0-9]{2})"),
)
CURRENCY_PATTERN = re.compile(r"\b(USD|EUR|CAD|GBP|JPY)\b", re.IGNORECASE)


class OCRError(Exception):
    pass


def _json_candidates(text: str) -> list:
    fenced = FENCED_JSON.search(text)
    if fenced:
        return [fenced.group(1).strip()]

    candidates = []
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])
    # Smaller objects, largest first
    candidates.extend(sorted(JSON_OBJECT.findall(text), key=len, reverse=True))
    return candidates


def _load_json_object(text: str):
    for candidate in _json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _parse_cost(value):
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"([0-9]+\.?[0-9]*)", re.sub(r"[^0-9.]", "", str(value)))
    return float(match.group(1)) if match else value


def extract_data_from_text(text: str) -> dict:
    """
    Maps a provider's free-form answer onto expense fields. Structured JSON is
    preferred; otherwise date, cost and currency are picked out with regexes.
    """
    data = {}
    parsed = _load_json_object(text or "")

    if parsed:
        for field, aliases in FIELD_ALIASES.items():
            for key in aliases:
                if parsed.get(key) not in (None, ""):
                    data[field] = parsed[key]
                    break
        for key in COST_KEYS:
            if parsed.get(key) is not None:
                data["cost"] = _parse_cost(parsed[key])
                break
        for key in ITEMS_KEYS:
            if isinstance(parsed.get(key), list):
                data["items"] = parsed[key]
                break
        if data:
            return data
        logger.info("Found JSON structure but no expected fields, falling back to regex extraction")

    date_match = DATE_PATTERN.search(text or "")
    if date_match:
        data["date"] = date_match.group(1)
    for pattern in COST_PATTERNS:
        cost_match = pattern.search(text or "")
        if cost_match:
            data["cost"] = float(cost_match.group(1).replace(",", ""))
            break
    currency_match = CURRENCY_PATTERN.search(text or "")
    if currency_match:
        data["currency"] = currency_match.group(1).upper()
    return data


def guess_expense_type(text: str, vendor: str = "") -> str:
    lower_text = (text or "").lower()
    lower_vendor = (vendor or "").lower()
    for expense_type, text_words, vendor_words in TYPE_KEYWORDS:
        if any(w in lower_text for w in text_words) or any(w in lower_vendor for w in vendor_words):
            return expense_type
    return "Other"


def normalize_date(value) -> str:
    """Best effort YYYY-MM-DD; unparseable values are passed through for manual correction."""
    if not value:
        return ""
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return str(value)
    return parsed.strftime("%Y-%m-%d")


def to_form_data(result: dict) -> dict:
    """Fixed field set the expense form auto-populates from."""
    if not result.get("success"):
        return {
            "date": "", "vendor": "", "location": "", "cost": "", "currency": "",
            "description": "", "type": "Other", "items": [], "paymentMethod": "",
        }

    extracted = result.get("extractedData") or {}
    form = {field: str(extracted[field]) if extracted.get(field) not in (None, "") else ""
            for field in FORM_FIELDS}
    form["date"] = normalize_date(form["date"])
    if not form["type"]:
        form["type"] = guess_expense_type(result.get("text", ""), form["vendor"])
    items = extracted.get("items")
    form["items"] = items if isinstance(items, list) else []
    form["paymentMethod"] = str(extracted.get("paymentMethod") or "")
    return form


def parse_odometer_reading(text: str):
    reading = None
    parsed = _load_json_object(text or "")
    if parsed:
        for key in READING_KEYS:
            if parsed.get(key) not in (None, ""):
                reading = str(parsed[key])
                break
    if reading is None:
        reading = text or ""

    cleaned = re.sub(r"[^0-9.]", "", reading)
    whole, _, fraction = cleaned.partition(".")
    cleaned = f"{whole}.{fraction.replace('.', '')}" if fraction else whole
    try:
        return float(cleaned)
    except ValueError:
        return None


class OCRService:
    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout

    def client_for(self, method: str, api_key: str = None) -> OpenAI:
        provider = PROVIDERS.get(method)
        if provider is None:
            raise OCRError(
                f"Unsupported OCR method: {method}. Only Gemini, OpenAI, Claude, and OpenRouter are supported."
            )
        api_key = api_key or settings.api_key_for(method)
        if not api_key:
            raise OCRError(f"No API key configured for {method}. Please set your API key in the settings page.")
        return OpenAI(
            api_key=api_key,
            base_url=provider["base_url"],
            default_headers=provider.get("headers"),
            timeout=self.timeout,
            max_retries=0,
        )

    def ask_vision(self, method: str, contents: bytes, mime_type: str, template: str) -> str:
        client = self.client_for(method)
        encoded = base64.b64encode(contents).decode("utf-8")
        prompt = PROMPTS.get(template, PROMPTS["general"])

        response = client.chat.completions.create(
            model=PROVIDERS[method]["model"],
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                    ],
                }
            ],
            max_tokens=1500,
            temperature=0.0,
        )

        if not response.choices or not response.choices[0].message.content:
            raise OCRError(f"Unexpected response format from {method} API")
        return response.choices[0].message.content.strip()

    def resolve_method(self, method: str, filename: str) -> str:
        if file_extension(filename) != ".pdf" or method in PROVIDERS:
            return method
        for candidate in PDF_FALLBACK_ORDER:
            if settings.api_key_for(candidate):
                logger.info(f"Unsupported method {method} for PDF, switching to {candidate}")
                return candidate
        raise OCRError(
            f"No vision API (Gemini, OpenAI, Claude, OpenRouter) configured for PDF processing. "
            f"Method '{method}' is not supported for PDFs."
        )

    def process_receipt(self, contents: bytes, filename: str, method: str = None, template: str = None) -> dict:
        """
        Sends one receipt to the chosen provider and maps the answer onto
        expense fields. Provider problems come back as success=False.
        """
        method = method or settings.DEFAULT_OCR_METHOD
        template = template or settings.OCR_TEMPLATE

        try:
            method = self.resolve_method(method, filename)
            logger.info(f"Processing {filename} with {method} OCR method using template: {template}")
            text = self.ask_vision(method, contents, content_type_for(filename), template)
        except (OCRError, OpenAIError) as e:
            logger.warning(f"OCR processing error ({method}): {e}")
            return {"success": False, "error": str(e)}

        extracted = extract_data_from_text(text)
        if not extracted:
            return {
                "success": True,
                "text": text,
                "extractedData": {"type": guess_expense_type(text)},
                "extractionError": "No structured JSON data found",
            }
        return {"success": True, "text": text, "extractedData": extracted}

    def read_odometer(self, contents: bytes, filename: str = "odometer.jpg", method: str = None) -> dict:
        method = method or settings.DEFAULT_OCR_METHOD
        try:
            text = self.ask_vision(method, contents, content_type_for(filename), "odometer")
        except (OCRError, OpenAIError) as e:
            logger.warning(f"Odometer OCR error ({method}): {e}")
            return {"success": False, "error": str(e)}

        reading = parse_odometer_reading(text)
        if reading is None:
            return {"success": False, "error": "Could not extract a valid odometer reading from the image using AI."}
        return {"success": True, "reading": reading}

    def test_connection(self, method: str, api_key: str = None) -> dict:
        if not method:
            return {"success": False, "message": "OCR method is required"}
        if not api_key:
            return {"success": False, "message": "API key is required for this OCR method"}
        try:
            self.client_for(method, api_key=api_key).models.list()
        except OCRError as e:
            return {"success": False, "message": str(e)}
        except OpenAIError as e:
            logger.warning(f"OCR key test failed for {method}: {e}")
            return {"success": False, "message": f"Invalid {method} API key or API error"}
        return {"success": True, "message": f"{method} API key is valid"}


ocr_service = OCRService()

