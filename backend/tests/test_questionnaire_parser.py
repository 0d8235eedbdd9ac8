"""Questionnaire parsing heuristics and per-format extraction."""
import io

import pytest
from docx import Document
from openpyxl import Workbook

from compliancehub.services.questionnaire_parser import (
    determine_question_type,
    determine_risk_level,
    extract_control_mappings,
    extract_framework_mappings,
    extract_keywords,
    is_question,
    is_required,
    is_section_header,
    parse_questionnaire,
)

TXT_QUESTIONNAIRE = """\
Vendor Security Assessment
Client: Globex Corporation
Description: Annual review of supplier controls
Section 1: Access Control
Do you enforce multi-factor authentication for all users?
Describe your password policy.
Section 2: Data Protection
Is customer data encrypted at rest with AES-256? (Yes/No)
When was your last penetration test?
Is there a mandatory security awareness training programme?
Please provide a copy of your ISO 27001 certificate.
"""


# ═══════════════════ HEURISTICS ═══════════════════

def test_is_question():
    assert is_question("What is your recovery time objective?")
    assert is_question("Explain your backup strategy")
    assert is_question("3.1 Describe how logs are retained")
    assert not is_question("Security Overview")


def test_is_section_header():
    assert is_section_header("Section 3 - Incident Response")
    assert is_section_header("Access Control")
    assert not is_section_header("Is this part of the section?")
    assert not is_section_header("We encrypt all data at rest using strong ciphers.")


@pytest.mark.parametrize("text,expected", [
    ("Is MFA enabled? Yes or No", "YES_NO"),
    ("Please rate your patch process on a scale of 1-5", "RATING_SCALE"),
    ("When did you last test your DR plan?", "DATE_PICKER"),
    ("Please attach your network diagram", "FILE_UPLOAD"),
    ("Check all that apply to your environment", "CHECKBOX_LIST"),
    ("Select your hosting provider", "DROPDOWN"),
    ("Which of the following standards do you follow?", "MULTIPLE_CHOICE"),
    ("Do you update systems regularly?", "YES_NO"),
    ("Describe your change management process.", "TEXT_INPUT"),
])
def test_determine_question_type(text, expected):
    assert determine_question_type(text) == expected


def test_options_make_multiple_choice():
    assert determine_question_type("Hosting region?", ["EU", "US"]) == "MULTIPLE_CHOICE"
    assert determine_question_type("Hosting region?", ["EU"]) == "TEXT_INPUT"


def test_determine_risk_level():
    assert determine_risk_level("Are critical systems patched?") == "CRITICAL"
    assert determine_risk_level("How is sensitive data stored?") == "HIGH"
    assert determine_risk_level("Do you follow basic hygiene?") == "LOW"
    assert determine_risk_level("Is the team highly skilled?") == "MEDIUM"


def test_is_required():
    assert is_required("Describe your SDLC *")
    assert is_required("Mandatory: provide your policy")
    assert not is_required("Describe your SDLC")


def test_extract_keywords_unique_in_order():
    text = "Do you have an incident response policy? Incident handling must be documented."
    assert extract_keywords(text) == ["incident", "policy"]


def test_extract_control_and_framework_mappings():
    assert extract_control_mappings("Describe backup and recovery testing") == ["CP-1", "CP-2", "CP-3"]
    assert extract_control_mappings("Tell us about your office") == []
    assert extract_framework_mappings("Are you SOC 2 and ISO 27001 certified?") == ["ISO 27001", "SOC 2"]


# ═══════════════════ FORMATS ═══════════════════

def test_parse_txt():
    result = parse_questionnaire("vendor.txt", io.BytesIO(TXT_QUESTIONNAIRE.encode()))
    assert result.source_format == "txt"
    assert result.title == "Vendor Security Assessment"
    assert result.client_name == "Globex Corporation"
    assert result.description == "Annual review of supplier controls"
    assert result.framework_mappings == ["ISO 27001"]

    questions = result.questions
    assert len(questions) == 6
    assert [q.order_index for q in questions] == list(range(6))

    mfa = questions[0]
    assert mfa.section == "Section 1: Access Control"
    assert mfa.question_type == "YES_NO"
    assert mfa.keywords == ["authentication"]
    assert mfa.control_mappings == ["AC-1", "AC-2", "AC-3"]

    assert questions[1].question_type == "TEXT_INPUT"
    assert questions[2].section == "Section 2: Data Protection"
    assert questions[2].question_type == "YES_NO"
    assert questions[3].question_type == "DATE_PICKER"
    assert questions[4].is_required is True
    assert questions[5].question_type == "FILE_UPLOAD"
    assert questions[5].framework_mappings == ["ISO 27001"]


def test_parse_csv_with_options():
    content = (
        "Cloud Vendor Questionnaire\n"
        "Client,Initech\n"
        "General\n"
        "Which hosting regions do you use?,EU,US,APAC\n"
        "Do you perform annual penetration tests?\n"
    )
    result = parse_questionnaire("cloud.csv", io.BytesIO(content.encode("utf-8-sig")))
    assert result.source_format == "csv"
    assert result.title == "Cloud Vendor Questionnaire"
    assert result.client_name == "Initech"
    regions, pentest = result.questions
    assert regions.section == "General"
    assert regions.question_type == "MULTIPLE_CHOICE"
    assert regions.options == ["EU", "US", "APAC"]
    assert pentest.question_type == "YES_NO"
    assert pentest.options == []


def test_parse_xlsx():
    wb = Workbook()
    ws = wb.active
    ws.append(["Security Questionnaire 2026"])
    ws.append(["Company", "Hooli"])
    ws.append(["Section A"])
    ws.append(["Describe your incident response process.", None])
    ws.append(["Choose your backup frequency?", "Daily", "Weekly"])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)

    result = parse_questionnaire("hooli.xlsx", buf)
    assert result.source_format == "xlsx"
    assert result.title == "Security Questionnaire 2026"
    assert result.client_name == "Hooli"
    incident, backup = result.questions
    assert incident.section == "Section A"
    assert incident.control_mappings == ["IR-1", "IR-2", "IR-3"]
    assert backup.question_type == "DROPDOWN"
    assert backup.options == ["Daily", "Weekly"]


def test_parse_docx_paragraphs_and_tables():
    doc = Document()
    doc.add_heading("Supplier Security Review", level=1)
    doc.add_paragraph("Section 1 Governance")
    doc.add_paragraph("Do you have an information security policy?")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Explain how access is revoked."
    buf = io.BytesIO()
    doc.save(buf)
    buf.seek(0)

    result = parse_questionnaire("review.docx", buf)
    assert result.source_format == "docx"
    assert result.title == "Supplier Security Review"
    texts = [q.text for q in result.questions]
    assert texts == ["Do you have an information security policy?", "Explain how access is revoked."]
    assert result.questions[0].section == "Section 1 Governance"


def test_unsupported_format():
    with pytest.raises(ValueError, match="Unsupported file format"):
        parse_questionnaire("notes.md", io.BytesIO(b"# Notes"))


def test_document_without_questions():
    with pytest.raises(ValueError, match="No questions found"):
        parse_questionnaire("empty.txt", io.BytesIO(b"Just a title line\nAnother heading\n"))


def test_broken_excel_file():
    with pytest.raises(ValueError, match="Cannot read Excel file"):
        parse_questionnaire("broken.xlsx", io.BytesIO(b"not a zip"))
