"""Extract text from uploaded questionnaires (PDF, DOCX, XLSX, CSV, TXT) and
decompose it into questions using keyword heuristics."""
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import BinaryIO

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("xlsx", "docx", "pdf", "csv", "txt")

SECURITY_KEYWORDS = (
    "security", "access", "authentication", "authorization", "encryption",
    "incident", "audit", "backup", "recovery", "network", "firewall",
    "vulnerability", "patch", "update", "monitoring", "logging",
    "compliance", "policy", "procedure", "training", "awareness",
)

CONTROL_FAMILIES = (
    (("access", "authentication"), "AC"),
    (("encryption", "cryptographic"), "SC"),
    (("incident", "response"), "IR"),
    (("audit", "logging"), "AU"),
    (("backup", "recovery"), "CP"),
)

FRAMEWORK_PATTERNS = (
    (("iso 27001", "iso27001"), "ISO 27001"),
    (("soc 2", "soc2"), "SOC 2"),
    (("pci dss", "pci"), "PCI DSS"),
    (("gdpr",), "GDPR"),
    (("hipaa",), "HIPAA"),
)

_HEADER_WORDS = re.compile(r"\b(section|chapter|part)\b", re.I)
_IMPERATIVE = re.compile(r"^(?:[\w.()]{1,8}\s+)?(describe|explain|list|provide|specify|detail)\b", re.I)
_YES_NO_LEAD = re.compile(r"^(?:[\w.()]{1,8}\s+)?(do|does|is|are|have|has|can|will)\b", re.I)


@dataclass
class ParsedQuestion:
    order_index: int
    text: str
    section: str | None = None
    question_type: str = "TEXT_INPUT"
    is_required: bool = False
    keywords: list[str] = field(default_factory=list)
    control_mappings: list[str] = field(default_factory=list)
    framework_mappings: list[str] = field(default_factory=list)
    risk_level: str = "MEDIUM"
    options: list[str] = field(default_factory=list)


@dataclass
class ParsedQuestionnaire:
    title: str
    source_format: str
    description: str | None = None
    client_name: str | None = None
    framework_mappings: list[str] = field(default_factory=list)
    questions: list[ParsedQuestion] = field(default_factory=list)


# ═══════════════════════════════════════════════
# TEXT EXTRACTION
# ═══════════════════════════════════════════════

def extract_text_from_pdf(file: BinaryIO, max_pages: int = 200) -> list[str]:
    """Extract non-empty lines from a PDF."""
    import pdfplumber

    lines: list[str] = []
    try:
        with pdfplumber.open(file) as pdf:
            for page in pdf.pages[:max_pages]:
                text = page.extract_text() or ""
                lines.extend(ln.strip() for ln in text.splitlines() if ln.strip())
    except Exception as e:
        logger.error("PDF extraction error: %s", e)
        raise ValueError(f"Cannot read PDF file: {e}")
    return lines


def extract_text_from_docx(file: BinaryIO) -> list[str]:
    """Extract paragraphs and table cells from a DOCX document."""
    from docx import Document

    lines: list[str] = []
    try:
        doc = Document(file)
        for para in doc.paragraphs:
            if para.text.strip():
                lines.append(para.text.strip())
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text.strip()]
                if cells:
                    lines.append(cells[0])
    except Exception as e:
        logger.error("DOCX extraction error: %s", e)
        raise ValueError(f"Cannot read DOCX file: {e}")
    return lines


def extract_rows_from_xlsx(file: BinaryIO) -> list[list[str]]:
    """Return every non-empty row of every sheet as a list of cell strings."""
    from openpyxl import load_workbook

    rows: list[list[str]] = []
    try:
        wb = load_workbook(file, read_only=True, data_only=True)
    except Exception as e:
        logger.error("XLSX extraction error: %s", e)
        raise ValueError(f"Cannot read Excel file: {e}")
    try:
        for ws in wb.worksheets:
            for row in ws.iter_rows(values_only=True):
                cells = [str(c).strip() if c is not None else "" for c in row]
                while cells and not cells[-1]:
                    cells.pop()
                if cells and cells[0]:
                    rows.append(cells)
    finally:
        wb.close()
    return rows


def _decode(raw: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


# ═══════════════════════════════════════════════
# HEURISTICS
# ═══════════════════════════════════════════════

def is_question(text: str) -> bool:
    return "?" in text or bool(_IMPERATIVE.search(text))


def is_section_header(text: str) -> bool:
    if "?" in text:
        return False
    return bool(_HEADER_WORDS.search(text)) or (len(text) < 50 and "." not in text and not is_question(text))


def determine_question_type(text: str, options: list[str] | None = None) -> str:
    lower = text.lower()
    if re.search(r"\byes\b", lower) and re.search(r"\bno\b", lower):
        return "YES_NO"
    if re.search(r"\b(rate|scale)\b", lower) or re.search(r"\b1\s*-\s*5\b", lower):
        return "RATING_SCALE"
    if re.search(r"\b(date|when)\b", lower):
        return "DATE_PICKER"
    if re.search(r"\b(upload|attach|file)\b", lower) or "provide a copy" in lower:
        return "FILE_UPLOAD"
    if re.search(r"\b(check all|tick)\b", lower) or "select all" in lower:
        return "CHECKBOX_LIST"
    if re.search(r"\b(select|choose)\b", lower):
        return "DROPDOWN"
    if (options and len(options) > 1) or "which of" in lower:
        return "MULTIPLE_CHOICE"
    if text.rstrip().endswith("?") and _YES_NO_LEAD.search(text):
        return "YES_NO"
    return "TEXT_INPUT"


def is_required(text: str) -> bool:
    lower = text.lower()
    return "*" in text or any(w in lower for w in ("required", "mandatory", "must"))


def extract_keywords(text: str) -> list[str]:
    seen: list[str] = []
    for word in text.lower().split():
        clean = re.sub(r"[^\w]", "", word)
        if clean in SECURITY_KEYWORDS and clean not in seen:
            seen.append(clean)
    return seen


def extract_control_mappings(text: str) -> list[str]:
    lower = text.lower()
    controls: list[str] = []
    for words, family in CONTROL_FAMILIES:
        if any(w in lower for w in words):
            controls.extend(f"{family}-{i}" for i in (1, 2, 3))
    return controls


def extract_framework_mappings(text: str) -> list[str]:
    lower = text.lower()
    return [name for patterns, name in FRAMEWORK_PATTERNS if any(p in lower for p in patterns)]


def determine_risk_level(text: str) -> str:
    lower = text.lower()
    if re.search(r"\b(critical|essential|vital)\b", lower):
        return "CRITICAL"
    if re.search(r"\b(high|important|sensitive)\b", lower):
        return "HIGH"
    if re.search(r"\b(low|basic)\b", lower):
        return "LOW"
    return "MEDIUM"


def _build_question(index: int, text: str, section: str | None, options: list[str] | None = None) -> ParsedQuestion:
    qtype = determine_question_type(text, options)
    return ParsedQuestion(
        order_index=index,
        text=text,
        section=section,
        question_type=qtype,
        is_required=is_required(text),
        keywords=extract_keywords(text),
        control_mappings=extract_control_mappings(text),
        framework_mappings=extract_framework_mappings(text),
        risk_level=determine_risk_level(text),
        options=list(options or []) if qtype in ("MULTIPLE_CHOICE", "DROPDOWN") else [],
    )


def _labelled_value(lines: list[str], labels: tuple[str, ...], limit: int = 10) -> str | None:
    """Find 'Label: value' (or label line followed by value line) near the top."""
    for i, line in enumerate(lines[:limit]):
        lower = line.lower()
        if any(lower.startswith(lbl) for lbl in labels):
            _, sep, rest = line.partition(":")
            if sep and rest.strip():
                return rest.strip()
            if i + 1 < len(lines):
                return lines[i + 1]
    return None


# ═══════════════════════════════════════════════
# PARSERS
# ═══════════════════════════════════════════════

def parse_lines(lines: list[str], source_format: str, fallback_title: str) -> ParsedQuestionnaire:
    title = next((ln for ln in lines if 5 < len(ln) < 100 and "?" not in ln), fallback_title)
    result = ParsedQuestionnaire(
        title=title,
        source_format=source_format,
        description=_labelled_value(lines, ("description", "overview", "purpose")),
        client_name=_labelled_value(lines, ("client", "company", "organization")),
        framework_mappings=extract_framework_mappings("\n".join(lines)),
    )
    section = None
    for line in lines:
        if line == title:
            continue
        if is_section_header(line):
            section = line
            continue
        if is_question(line):
            result.questions.append(_build_question(len(result.questions), line, section))
    return result


def parse_rows(rows: list[list[str]], fallback_title: str) -> ParsedQuestionnaire:
    """Spreadsheet variant: first cell carries the text, remaining cells are answer options."""
    first_cells = [r[0] for r in rows]
    title = next((c for c in first_cells[:5] if 5 < len(c) < 100 and "?" not in c), fallback_title)
    labelled = {r[0].lower(): r[1] for r in rows[:10] if len(r) > 1 and r[1]}
    result = ParsedQuestionnaire(
        title=title,
        source_format="xlsx",
        description=next((v for k, v in labelled.items() if k.startswith(("description", "overview"))), None),
        client_name=next((v for k, v in labelled.items() if k.startswith(("client", "company", "organization"))), None),
        framework_mappings=extract_framework_mappings("\n".join(" ".join(r) for r in rows)),
    )
    section = None
    for row in rows:
        text = row[0]
        if text == title:
            continue
        if is_question(text):
            options = [c for c in row[1:] if c]
            result.questions.append(_build_question(len(result.questions), text, section, options))
        elif is_section_header(text):
            section = text
    return result


def parse_questionnaire(filename: str, file: BinaryIO) -> ParsedQuestionnaire:
    """Parse an uploaded questionnaire. Raises ValueError for unsupported or empty documents."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    fallback_title = stem or "Security Questionnaire"

    if ext == "xlsx":
        result = parse_rows(extract_rows_from_xlsx(file), fallback_title)
    elif ext == "pdf":
        result = parse_lines(extract_text_from_pdf(file), "pdf", fallback_title)
    elif ext == "docx":
        result = parse_lines(extract_text_from_docx(file), "docx", fallback_title)
    elif ext == "csv":
        reader = csv.reader(io.StringIO(_decode(file.read())))
        rows = [[c.strip() for c in r] for r in reader if r and r[0].strip()]
        result = parse_rows(rows, fallback_title)
        result.source_format = "csv"
    elif ext == "txt":
        lines = [ln.strip() for ln in _decode(file.read()).splitlines() if ln.strip()]
        result = parse_lines(lines, "txt", fallback_title)
    else:
        raise ValueError(f"Unsupported file format: .{ext}. Supported: " + ", ".join(f".{f}" for f in SUPPORTED_FORMATS))

    if not result.questions:
        raise ValueError("No questions found in the document")

    logger.info("Parsed %s questionnaire '%s': %d questions", result.source_format, result.title, len(result.questions))
    return result
