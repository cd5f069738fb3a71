"""Read subject marks out of marksheet files of various formats."""
import csv
import io
import json
import re
from pathlib import Path

from study_pilot.errors import ValidationError
from study_pilot.models import SubjectMark
from study_pilot.profile import parse_marks, save_marks

# "Mathematics: 40/100", "Physics 80 / 100", "Chemistry - 55 out of 100"
MARK_LINE = re.compile(
    r"^\s*(?P<subject>[A-Za-z][A-Za-z &().'-]*?)\s*[:\-|,]?\s*"
    r"(?P<marks>\d+(?:\.\d+)?)\s*(?:/|out of|of)\s*(?P<max>\d+(?:\.\d+)?)\s*$",
    re.IGNORECASE,
)
SKIPPED_SUBJECTS = {"total", "grand total", "aggregate", "overall"}


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix in (".txt", ".md", ".csv", ".json"):
        return path.read_text()
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
        return json.dumps(data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        lines = [p.text for p in doc.paragraphs]
        for table in doc.tables:
            for row in table.rows:
                lines.append(",".join(cell.text.strip() for cell in row.cells))
        return "\n".join(lines)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return BeautifulSoup(html, "html.parser").get_text("\n")
    else:
        # Try reading as plain text
        return path.read_text()


def _marks_from_json(text: str) -> list[SubjectMark] | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict):
        data = data.get("marks", data.get("subjects"))
    if not isinstance(data, list):
        return None
    return parse_marks(data)


def _marks_from_csv(text: str) -> list[SubjectMark] | None:
    reader = csv.DictReader(io.StringIO(text))
    fields = {f.strip().lower() for f in (reader.fieldnames or [])}
    if not {"subject", "marks"} <= fields or not fields & {"maxmarks", "max_marks", "max"}:
        return None
    rows = []
    for row in reader:
        row = {k.strip().lower(): (v or "").strip() for k, v in row.items() if k}
        rows.append({
            "subject": row["subject"],
            "marks": row["marks"],
            "maxMarks": row.get("maxmarks") or row.get("max_marks") or row.get("max"),
        })
    return parse_marks(rows)


def extract_marks(text: str) -> list[SubjectMark]:
    """Find subject marks in marksheet text.

    Structured content (JSON/YAML list, CSV with a header) is used as is;
    otherwise every "<subject> <marks>/<max>" line counts.
    """
    for structured in (_marks_from_json, _marks_from_csv):
        marks = structured(text)
        if marks is not None:
            return marks
    rows = []
    for line in text.splitlines():
        m = MARK_LINE.match(line)
        if m and m.group("subject").strip(" -:|").lower() not in SKIPPED_SUBJECTS:
            rows.append({
                "subject": m.group("subject").strip(" -:|"),
                "marks": m.group("marks"),
                "maxMarks": m.group("max"),
            })
    return parse_marks(rows)


def import_marksheet(db_path: str, user_id: str, file_path: str) -> dict:
    """Replace the user's marks with the ones found in a marksheet file."""
    content = read_file_content(file_path)
    marks = extract_marks(content)
    if not marks:
        raise ValidationError(f"No subject marks found in {Path(file_path).name}")
    save_marks(db_path, user_id, marks)
    return {"filename": Path(file_path).name, "subjects": [m.subject for m in marks], "count": len(marks)}
