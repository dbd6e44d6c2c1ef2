"""
Row validator for bulk product import.

Turns a RawRow into either a CandidateProduct or the full list of
field-level errors for that row. Every column is checked even after
one fails, so a merchant sees all problems on a row at once. Rows can
also carry warnings, which never block the import.

Validation never looks at other rows: duplicate SKUs inside a batch are
the reconciler's job.
"""

import json
import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlparse
import structlog

from models.catalog_import import RowErrorCode
from parsers.import_schema import (
    ColumnSchema,
    ColumnSpec,
    IMAGE_URL_SEPARATOR,
    MAX_NAME_LENGTH,
    MAX_SKU_LENGTH,
    MAX_VARIANTS,
    SKU_PATTERN,
)
from parsers.row_parser import RawRow
from utils.text_utils import clean_text, strip_bidi_marks

logger = structlog.get_logger(__name__)

TRUE_VALUES = {"yes", "y", "true", "1", "نعم"}
FALSE_VALUES = {"no", "n", "false", "0", "لا"}

# Arabic-Indic and Persian digits, Arabic decimal/thousands separators
_DIGIT_TRANSLATION = str.maketrans(
    "٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹٫٬",
    "01234567890123456789.,",
)
_GROUPED_NUMBER = re.compile(r"^-?\d{1,3}(,\d{3})+(\.\d+)?$")


@dataclass(frozen=True)
class CandidateVariant:
    """One variant from the Variants column. price None means the product price."""
    sku: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)
    price: Optional[float] = None
    stock: int = 0
    images: tuple[str, ...] = ()
    active: bool = True


@dataclass(frozen=True)
class CandidateProduct:
    """Normalized product row, ready for reconciliation."""
    row_index: int
    name: str
    category_code: str
    price: float
    stock: int
    currency: str
    sku: Optional[str] = None
    description: Optional[str] = None
    image_urls: tuple[str, ...] = ()
    attributes: dict[str, str] = field(default_factory=dict)
    variants: tuple[CandidateVariant, ...] = ()
    active: bool = True
    warnings: tuple[str, ...] = ()


@dataclass
class RowError:
    """Single field-level problem on a row."""
    row_index: int
    field: str
    code: RowErrorCode
    message: str


@dataclass
class ValidationResult:
    """Either a candidate or errors, never both."""
    row_index: int
    candidate: Optional[CandidateProduct] = None
    errors: list[RowError] = field(default_factory=list)
    sku: Optional[str] = None
    name: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.candidate is not None


class FieldInvalid(Exception):
    """Raised by a field rule; collected into a RowError."""

    def __init__(self, code: RowErrorCode, message: str, field: Optional[str] = None):
        self.code = code
        self.message = message
        self.field = field
        super().__init__(message)


class FieldsInvalid(Exception):
    """Several problems inside one cell, e.g. one per variant."""

    def __init__(self, problems: list[FieldInvalid]):
        self.problems = problems
        super().__init__("; ".join(p.message for p in problems))


@dataclass
class ValidationContext:
    """Per-batch lookups shared by every row."""
    category_lookup: dict[str, str]
    default_currency: str

    @classmethod
    def build(cls, category_codes: Iterable[str], default_currency: str) -> "ValidationContext":
        return cls(
            category_lookup={code.casefold(): code for code in category_codes},
            default_currency=default_currency.upper(),
        )


def validate_row(
    raw_row: RawRow,
    schema: ColumnSchema,
    category_codes: Iterable[str],
    default_currency: str = "USD",
) -> ValidationResult:
    """
    Validate a single row.

    Args:
        raw_row: Row from the parser
        schema: Column schema
        category_codes: Category codes that exist in the catalog
        default_currency: Used when the Currency cell is blank

    Returns:
        ValidationResult with a candidate or a non-empty error list
    """
    context = ValidationContext.build(category_codes, default_currency)
    return _validate(raw_row, schema, context)


def validate_rows(
    raw_rows: list[RawRow],
    schema: ColumnSchema,
    category_codes: Iterable[str],
    default_currency: str = "USD",
) -> list[ValidationResult]:
    """Validate a batch, preserving order."""
    context = ValidationContext.build(category_codes, default_currency)
    results = [_validate(row, schema, context) for row in raw_rows]

    logger.info(
        "import_rows_validated",
        total=len(results),
        valid=sum(1 for r in results if r.is_valid),
        invalid=sum(1 for r in results if not r.is_valid),
    )
    return results


def _validate(raw_row: RawRow, schema: ColumnSchema, context: ValidationContext) -> ValidationResult:
    values: dict[str, Any] = {}
    errors: list[RowError] = []

    for column in schema:
        raw = raw_row.get(column.key)

        if raw is None and column.required:
            errors.append(RowError(
                row_index=raw_row.row_index,
                field=column.key,
                code=RowErrorCode.MISSING_REQUIRED,
                message=f"{column.header} is required",
            ))
            continue

        rule = _FIELD_RULES.get(column.key, _generic_rule)
        try:
            values[column.key] = rule(raw, column, context)
        except FieldInvalid as e:
            errors.append(_row_error(raw_row, column, e))
        except FieldsInvalid as e:
            errors.extend(_row_error(raw_row, column, problem) for problem in e.problems)

    result = ValidationResult(
        row_index=raw_row.row_index,
        sku=values.get("sku") or _as_text(raw_row.get("sku")),
        name=values.get("name") or _as_text(raw_row.get("name")),
        warnings=_row_warnings(values),
    )

    if errors:
        result.errors = errors
        return result

    price = values["price"]
    result.candidate = CandidateProduct(
        row_index=raw_row.row_index,
        sku=values.get("sku"),
        name=values["name"],
        description=values.get("description"),
        category_code=values["category"],
        price=price,
        stock=values.get("stock", 0),
        currency=values.get("currency") or context.default_currency,
        image_urls=values.get("image_urls", ()),
        attributes=values.get("attributes", {}),
        variants=tuple(
            v if v.price is not None else replace(v, price=price)
            for v in values.get("variants", ())
        ),
        active=values.get("active", True),
        warnings=tuple(result.warnings),
    )
    return result


def _row_error(raw_row: RawRow, column: ColumnSpec, problem: FieldInvalid) -> RowError:
    return RowError(
        row_index=raw_row.row_index,
        field=problem.field or column.key,
        code=problem.code,
        message=problem.message,
    )


def _row_warnings(values: dict[str, Any]) -> list[str]:
    """Things worth telling the merchant that don't block the row."""
    warnings = []
    if "description" in values and values["description"] is None:
        warnings.append("Description is empty")
    if "image_urls" in values and not values["image_urls"]:
        warnings.append("No image URLs; the product is listed without photos")
    return warnings


# ===================
# FIELD RULES
# ===================

def _validate_sku(raw, column: ColumnSpec, context: ValidationContext) -> Optional[str]:
    sku = _as_text(raw)
    if sku is None:
        return None
    return _normalize_sku(sku)


def _validate_name(raw, column: ColumnSpec, context: ValidationContext) -> str:
    name = clean_text(_as_text(raw))
    if not name:
        raise FieldInvalid(RowErrorCode.INVALID_NAME, "Name is empty")
    if len(name) > (column.max_length or MAX_NAME_LENGTH):
        raise FieldInvalid(
            RowErrorCode.INVALID_NAME,
            f"Name must be {column.max_length or MAX_NAME_LENGTH} characters or less",
        )
    return name


def _validate_description(raw, column: ColumnSpec, context: ValidationContext) -> Optional[str]:
    text = _as_text(raw)
    if text is None:
        return None
    text = strip_bidi_marks(text).strip() or None
    if text and column.max_length and len(text) > column.max_length:
        raise FieldInvalid(
            RowErrorCode.TOO_LONG,
            f"{column.header} must be {column.max_length} characters or less",
        )
    return text


def _validate_price(raw, column: ColumnSpec, context: ValidationContext) -> float:
    price = _parse_price(raw)
    if price is None:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Price must be a number")
    if price <= 0:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Price must be at least 0.01")
    return price


def _validate_stock(raw, column: ColumnSpec, context: ValidationContext) -> int:
    if raw is None:
        return 0
    stock = _parse_whole_number(raw)
    if stock is None:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Stock must be a whole number, 0 or more")
    return stock


def _validate_currency(raw, column: ColumnSpec, context: ValidationContext) -> str:
    currency = _as_text(raw)
    if currency is None:
        return context.default_currency
    currency = currency.strip().upper()
    if column.enum_values and currency not in column.enum_values:
        raise FieldInvalid(
            RowErrorCode.INVALID_CURRENCY,
            f"Currency must be one of: {', '.join(sorted(column.enum_values))}",
        )
    return currency


def _validate_category(raw, column: ColumnSpec, context: ValidationContext) -> str:
    code = clean_text(_as_text(raw))
    canonical = context.category_lookup.get(code.casefold()) if code else None
    if canonical is None:
        raise FieldInvalid(
            RowErrorCode.UNKNOWN_CATEGORY,
            f"Unknown category code: {code}",
        )
    return canonical


def _validate_image_urls(raw, column: ColumnSpec, context: ValidationContext) -> tuple[str, ...]:
    text = _as_text(raw)
    if text is None:
        return ()

    urls: list[str] = []
    invalid: list[str] = []
    for part in text.split(IMAGE_URL_SEPARATOR):
        url = strip_bidi_marks(part).strip()
        if not url:
            continue
        if not _is_valid_url(url):
            invalid.append(url)
        elif url not in urls:
            urls.append(url)

    if invalid:
        raise FieldInvalid(
            RowErrorCode.INVALID_URL,
            f"Invalid image URL(s): {', '.join(invalid)}",
        )
    return tuple(urls)


def _validate_attributes(raw, column: ColumnSpec, context: ValidationContext) -> dict[str, str]:
    text = _as_text(raw)
    if text is None:
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        raise FieldInvalid(RowErrorCode.INVALID_JSON, "Attributes must be valid JSON")

    if not isinstance(parsed, dict):
        raise FieldInvalid(RowErrorCode.INVALID_JSON, "Attributes must be a JSON object")
    return _attribute_map(parsed)


def _validate_variants(raw, column: ColumnSpec, context: ValidationContext) -> tuple[CandidateVariant, ...]:
    """
    Parse the Variants cell: a JSON list of variant objects.

    Each bad variant field is its own error, reported as
    variants[<index>].<field> so the merchant can find it in the cell.
    """
    text = _as_text(raw)
    if text is None:
        return ()
    try:
        parsed = json.loads(text)
    except ValueError:
        raise FieldInvalid(RowErrorCode.INVALID_JSON, "Variants must be valid JSON")

    if not isinstance(parsed, list):
        raise FieldInvalid(RowErrorCode.INVALID_JSON, "Variants must be a JSON list")
    if len(parsed) > MAX_VARIANTS:
        raise FieldInvalid(RowErrorCode.TOO_LONG, f"A product can have at most {MAX_VARIANTS} variants")

    variants: list[CandidateVariant] = []
    problems: list[FieldInvalid] = []
    seen_skus: set[str] = set()

    for index, item in enumerate(parsed):
        prefix = f"{column.key}[{index}]"
        if not isinstance(item, dict):
            problems.append(FieldInvalid(
                RowErrorCode.INVALID_JSON,
                f"Variant {index + 1} must be a JSON object",
                field=prefix,
            ))
            continue

        variant, variant_problems = _parse_variant(item, prefix)
        if variant is not None and variant.sku:
            if variant.sku in seen_skus:
                variant_problems.append(FieldInvalid(
                    RowErrorCode.INVALID_SKU,
                    f"Variant SKU {variant.sku} is repeated",
                    field=f"{prefix}.sku",
                ))
            seen_skus.add(variant.sku)

        if variant_problems:
            problems.extend(variant_problems)
        else:
            variants.append(variant)

    if problems:
        raise FieldsInvalid(problems)
    return tuple(variants)


def _validate_boolean(raw, column: ColumnSpec, context: ValidationContext) -> bool:
    if raw is None:
        return True
    value = _parse_boolean(raw)
    if value is None:
        raise FieldInvalid(
            RowErrorCode.INVALID_BOOLEAN,
            f"{column.header} must be yes or no",
        )
    return value


def _generic_rule(raw, column: ColumnSpec, context: ValidationContext) -> Any:
    """Fallback for columns without a dedicated rule."""
    return _as_text(raw)


# ===================
# VARIANT FIELDS
# ===================

def _variant_sku(raw) -> Optional[str]:
    sku = _as_text(raw)
    return _normalize_sku(sku, label="Variant SKU") if sku else None


def _variant_attributes(raw) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise FieldInvalid(RowErrorCode.INVALID_JSON, "Variant attributes must be a JSON object")
    return _attribute_map(raw)


def _variant_price(raw) -> Optional[float]:
    if raw is None:
        return None
    price = _parse_price(raw)
    if price is None:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Variant price must be a number")
    if price <= 0:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Variant price must be at least 0.01")
    return price


def _variant_stock(raw) -> int:
    if raw is None:
        return 0
    stock = _parse_whole_number(raw)
    if stock is None:
        raise FieldInvalid(RowErrorCode.INVALID_NUMBER, "Variant stock must be a whole number, 0 or more")
    return stock


def _variant_images(raw) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = raw.split(IMAGE_URL_SEPARATOR)
    if not isinstance(raw, list):
        raise FieldInvalid(RowErrorCode.INVALID_URL, "Variant images must be a list of URLs")

    urls = [strip_bidi_marks(str(url)).strip() for url in raw]
    urls = [url for url in urls if url]
    invalid = [url for url in urls if not _is_valid_url(url)]
    if invalid:
        raise FieldInvalid(RowErrorCode.INVALID_URL, f"Invalid image URL(s): {', '.join(invalid)}")
    return tuple(dict.fromkeys(urls))


def _variant_active(raw) -> bool:
    if raw is None:
        return True
    value = _parse_boolean(raw)
    if value is None:
        raise FieldInvalid(RowErrorCode.INVALID_BOOLEAN, "Variant active must be yes or no")
    return value


_VARIANT_RULES: dict[str, Callable[[Any], Any]] = {
    "sku": _variant_sku,
    "attributes": _variant_attributes,
    "price": _variant_price,
    "stock": _variant_stock,
    "images": _variant_images,
    "active": _variant_active,
}


def _parse_variant(item: dict, prefix: str) -> tuple[Optional[CandidateVariant], list[FieldInvalid]]:
    """Check one variant object. Unknown keys are ignored."""
    # merchantPrice is what catalog exports write
    raw_values = dict(item)
    if "price" not in raw_values and "merchantPrice" in raw_values:
        raw_values["price"] = raw_values["merchantPrice"]

    values: dict[str, Any] = {}
    problems: list[FieldInvalid] = []
    for name, rule in _VARIANT_RULES.items():
        try:
            values[name] = rule(raw_values.get(name))
        except FieldInvalid as e:
            problems.append(FieldInvalid(e.code, e.message, field=f"{prefix}.{name}"))

    if problems:
        return None, problems
    return CandidateVariant(**values), problems


_FIELD_RULES: dict[str, Callable[[Any, ColumnSpec, ValidationContext], Any]] = {
    "sku": _validate_sku,
    "name": _validate_name,
    "description": _validate_description,
    "price": _validate_price,
    "currency": _validate_currency,
    "category": _validate_category,
    "stock": _validate_stock,
    "image_urls": _validate_image_urls,
    "attributes": _validate_attributes,
    "variants": _validate_variants,
    "active": _validate_boolean,
}


# ===================
# HELPER FUNCTIONS
# ===================

def _normalize_sku(sku: str, label: str = "SKU") -> str:
    sku = strip_bidi_marks(sku).strip()
    if len(sku) > MAX_SKU_LENGTH:
        raise FieldInvalid(
            RowErrorCode.INVALID_SKU,
            f"{label} must be {MAX_SKU_LENGTH} characters or less",
        )
    if not SKU_PATTERN.match(sku):
        raise FieldInvalid(
            RowErrorCode.INVALID_SKU,
            f"{label} may only contain letters, digits, '-' and '_', starting with a letter or digit",
        )
    return sku.upper()


def _attribute_map(parsed: dict) -> dict[str, str]:
    """JSON object of scalars -> text values."""
    attributes: dict[str, str] = {}
    for key, value in parsed.items():
        if isinstance(value, (dict, list)) or value is None:
            raise FieldInvalid(
                RowErrorCode.INVALID_JSON,
                f"Attribute '{key}' must be a text or number value",
            )
        attributes[str(key).strip()] = str(value).strip()
    return attributes


def _parse_boolean(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value) if value in (0, 1) else None

    text = clean_text(_as_text(value))
    lowered = text.lower() if text else ""
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def _parse_price(value) -> Optional[float]:
    """Price rounded to cents, so 0.004 comes back as 0.0."""
    number = _parse_number(value)
    return round(number, 2) if number is not None else None


def _parse_whole_number(value) -> Optional[int]:
    number = _parse_number(value)
    if number is None or number < 0 or not number.is_integer():
        return None
    return int(number)


def _as_text(value) -> Optional[str]:
    """
    Render a raw cell as text.

    Spreadsheets store codes like 1001 as numbers; 1001.0 becomes "1001".
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def _parse_number(value) -> Optional[float]:
    """Parse a cell as a finite number, or None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().translate(_DIGIT_TRANSLATION).replace(" ", "")
        if _GROUPED_NUMBER.match(text):
            text = text.replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
