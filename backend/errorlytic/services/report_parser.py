# errorlytic/services/report_parser.py
import io
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import pdfplumber

from ..config import settings

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("txt", "csv", "xlsx", "xml", "pdf")
FAULT_STATUSES = ("active", "stored", "pending")

# VCDS fault section header: "3 Faults Found:" / "1 Fault Found"
FAULT_SECTION_RE = re.compile(r'^\s*(\d+)\s+Faults?\s+Found:?', re.IGNORECASE)
NO_FAULT_RE = re.compile(r'^\s*No\s+fault\s+codes?\s+found', re.IGNORECASE)
SECTION_END_RE = re.compile(r'^\s*(?:-{3,}|Address\s+\d+\s*:|End\b)', re.IGNORECASE)
ADDRESS_RE = re.compile(r'^\s*Address\s+(\d+)\s*:', re.IGNORECASE | re.MULTILINE)

# "17158 - Databus" or "00532 - 007 - Supply Voltage B+"
VAG_FAULT_RE = re.compile(r'^(\d{4,8})\s*-\s*(?:\d{3}\s*-\s*)?(.+)$')
# "P0300 - Random/Multiple Cylinder Misfire Detected"
OBD_FAULT_RE = re.compile(r'^([PCBU]\d{4})(?:\s*[-:]\s*|\s+)(\S.*)$', re.IGNORECASE)
OBD_TOKEN_RE = re.compile(r'\b([PCBU]\d{4})\b', re.IGNORECASE)
CODE_TOKEN_RE = re.compile(r'^(?:[PCBU]\d{4}|\d{5,8})(?:[\s:-]|$)', re.IGNORECASE)
STRUCTURED_CODE_RE = re.compile(r'^(?:[PCBU]\d{4}|\d{4,8})$', re.IGNORECASE)
# "152340 km", "152,340 km", "152.340 km"
MILEAGE_RE = re.compile(r"\b(\d{1,3}(?:[,.' ]\d{3})+|\d+)\s*(km|kilometers|miles)\b", re.IGNORECASE)
# "U1123 00 [009] - Received Error Message", "Intermittent - Confirmed - ..."
DETAIL_LINE_RE = re.compile(
    r'^(?:[PCBU]\d{4}\s+\d{2}\b|\[\d+\]|\d{3}\s*-|Intermittent\b|Confirmed\b|Pending\b'
    r'|Stored\b|Not\s+Present\b|Freeze\s+Frame|Fault\s+Status)',
    re.IGNORECASE
)
# Metadata lines that may appear inside a VCDS fault section
NON_FAULT_LINE_RE = re.compile(
    r'^(?:Readiness|Freeze\s+Frame|Fault\s+Status|Fault\s+Priority|Fault\s+Frequency'
    r'|Reset\s+counter|Mileage|Date|Time)\b',
    re.IGNORECASE
)

PENDING_WORDS = ("intermittent", "pending")
STORED_WORDS = ("not present", "stored", "historic")

# Tabular column detection (lower-cased header text)
CODE_HEADERS = ['code', 'dtc', 'fault code', 'error code', 'dtc code', 'fault']
DESCRIPTION_HEADERS = ['description', 'desc', 'fault description', 'text', 'message']
STATUS_HEADERS = ['status', 'state', 'fault status']

# XML element/attribute names carrying fault data (lower-cased)
XML_CODE_NAMES = ('code', 'dtc', 'faultcode')
XML_DESCRIPTION_NAMES = ('description', 'desc', 'text', 'name')
XML_STATUS_NAMES = ('status', 'state')


def detect_status(text: str) -> str:
    """Map status words found in a fault line to a fault status"""
    lowered = text.lower()
    if any(word in lowered for word in PENDING_WORDS):
        return "pending"
    if any(word in lowered for word in STORED_WORDS):
        return "stored"
    return "active"


@dataclass
class ParsedFault:
    """One fault code extracted from a report, before classification"""
    code: str
    description: str
    status: str = "active"
    line: Optional[int] = None
    obd_code: Optional[str] = None

    def __post_init__(self):
        if not self.code or not self.code.strip():
            raise ValueError("Fault code is required")
        self.code = self.code.strip().upper()
        self.description = (self.description or "").strip() or f"Error Code {self.code}"
        if self.status not in FAULT_STATUSES:
            raise ValueError(f"Invalid fault status: {self.status}")


@dataclass
class ParseResult:
    """Structured output of the report parser"""
    success: bool
    report_format: str
    source: str = "Other"
    fault_entries: List[ParsedFault] = field(default_factory=list)
    vehicle_info: Dict[str, Any] = field(default_factory=dict)
    diagnostic_info: Dict[str, Any] = field(default_factory=dict)
    raw_content: str = ""
    parse_errors: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def __post_init__(self):
        if self.source not in ("VCDS", "OBD", "Other"):
            raise ValueError(f"Invalid report source: {self.source}")
        if not self.success and not self.error:
            raise ValueError("Failed parse result requires an error message")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReportParser:
    """
    Diagnostic Report Parser Service

    Turns raw scan-tool output (VCDS or generic OBD-II) into fault entries,
    vehicle metadata and diagnostic metadata. Supported formats:
    - txt: plain text dump
    - csv / xlsx: one fault per row, header detected by keyword
    - xml: elements carrying a code, or flattened text
    - pdf: page text extracted with pdfplumber

    Never raises: any failure is reported as success=False.
    """

    def __init__(self, preview_chars: Optional[int] = None):
        self.preview_chars = preview_chars or settings.RAW_CONTENT_PREVIEW_CHARS

    def parse(self, content: bytes, report_format: str) -> ParseResult:
        """
        Parse raw report bytes

        Args:
            content: Report file content
            report_format: Declared format (txt, csv, xlsx, xml, pdf)

        Returns:
            ParseResult with success flag, fault entries and metadata
        """
        report_format = (report_format or "").lower().lstrip(".")
        if report_format not in SUPPORTED_FORMATS:
            logger.warning(f"[Parser] Unsupported report format: {report_format}")
            return ParseResult(success=False, report_format=report_format or "unknown",
                               error=f"Unsupported report format: {report_format}")

        try:
            logger.info(f"[Parser] Parsing {report_format} report ({len(content)} bytes)")
            parse_errors: List[str] = []
            candidates: List[Tuple[Optional[int], str, str, str]] = []

            if report_format == "txt":
                text = self._decode_text(content)
                lines = text.splitlines()
            elif report_format == "pdf":
                text = self._extract_pdf_text(content, parse_errors)
                lines = text.splitlines()
            elif report_format == "xml":
                text, lines, candidates = self._extract_xml(content)
            else:
                text, lines, candidates = self._extract_tabular(content, report_format)

            # Flattened tabular/XML text has no section headers, so VAG lines are accepted anywhere
            state = _LineGrammar(vag_anywhere=report_format in ("csv", "xlsx", "xml"))
            for line_no, code, description, status_text in candidates:
                state.add_structured(line_no, code, description, status_text)
            state.run(lines)
            parse_errors.extend(state.errors)

            vehicle_info = self._extract_vehicle_info(text)
            diagnostic_info = self._extract_diagnostic_info(text, state)
            source = self._detect_source(text, state)

            if not state.faults and not state.sections and not vehicle_info:
                logger.warning(f"[Parser] No diagnostic content found in {report_format} report")
                return ParseResult(
                    success=False,
                    report_format=report_format,
                    raw_content=text[:self.preview_chars],
                    parse_errors=parse_errors,
                    error="No diagnostic content could be extracted from the report"
                )

            logger.info(f"[Parser] Extracted {len(state.faults)} faults "
                        f"({len(parse_errors)} parse errors), source={source}")

            return ParseResult(
                success=True,
                report_format=report_format,
                source=source,
                fault_entries=state.faults,
                vehicle_info=vehicle_info,
                diagnostic_info=diagnostic_info,
                raw_content=text[:self.preview_chars],
                parse_errors=parse_errors
            )

        except Exception as e:
            logger.error(f"[Parser] Failed to parse {report_format} report: {e}")
            return ParseResult(success=False, report_format=report_format, error=str(e) or e.__class__.__name__)

    # ------------------------------------------------------------------
    # Text extraction per format
    # ------------------------------------------------------------------

    def _decode_text(self, content: bytes) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            return content.decode("latin-1")

    def _extract_pdf_text(self, content: bytes, parse_errors: List[str]) -> str:
        """Extract page text with pdfplumber, noting pages without text"""
        page_texts = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page_num, page in enumerate(pdf.pages, 1):
                page_text = page.extract_text()
                if page_text and page_text.strip():
                    page_texts.append(page_text)
                else:
                    logger.warning(f"[Parser] No text found on page {page_num}")
                    parse_errors.append(f"Page {page_num}: no extractable text")
        return "\n".join(page_texts)

    def _extract_tabular(self, content: bytes, report_format: str):
        """
        Load a CSV/XLSX report with pandas and map fault columns by name

        Returns:
            (full text, fallback text lines, structured candidates)
        """
        if report_format == "csv":
            text = self._decode_text(content)
            delimiter = self._sniff_delimiter(text)
            # Metadata rows above the fault table are ragged, so size columns to the widest row
            width = max((line.count(delimiter) + 1 for line in text.splitlines()), default=1)
            df_raw = pd.read_csv(io.StringIO(text), header=None, sep=delimiter, names=list(range(width)),
                                 dtype=str, skip_blank_lines=True, engine="python")
        else:
            df_raw = pd.read_excel(io.BytesIO(content), engine="openpyxl", sheet_name=0,
                                   header=None, dtype=str)

        df_raw = df_raw.fillna("")
        rows = [[str(value).strip() for value in row] for row in df_raw.values.tolist()]
        row_lines = [" ".join(cell for cell in row if cell) for row in rows]
        full_text = "\n".join(row_lines)

        header_row = self._find_header_row(rows)
        if header_row < 0:
            logger.info("[Parser] No header row detected, falling back to text grammar")
            return full_text, row_lines, []

        col_map = self._map_columns(rows[header_row])
        logger.info(f"[Parser] Detected header row {header_row}, column mapping: {col_map}")
        if col_map["code"] is None:
            return full_text, row_lines, []

        candidates = []
        for idx in range(header_row + 1, len(rows)):
            row = rows[idx]
            if not any(row):
                continue
            code = row[col_map["code"]]
            description = row[col_map["description"]] if col_map["description"] is not None else ""
            status_text = row[col_map["status"]] if col_map["status"] is not None else ""
            # Spreadsheet rows are 1-indexed
            candidates.append((idx + 1, code, description, status_text))

        # Rows above the header still carry vehicle metadata; only the text is used
        return full_text, [], candidates

    def _sniff_delimiter(self, text: str) -> str:
        sample = "\n".join(text.splitlines()[:20])
        counts = {delimiter: sample.count(delimiter) for delimiter in (",", ";", "\t", "|")}
        best = max(counts, key=counts.get)
        return best if counts[best] else ","

    def _find_header_row(self, rows: List[List[str]]) -> int:
        """
        Auto-detect which row contains column headers.

        Searches the first 10 rows for a cell naming the fault code column.

        Returns:
            Row index (0-based) where headers are located, or -1 if not found
        """
        for idx in range(min(10, len(rows))):
            if any(cell.lower() in CODE_HEADERS for cell in rows[idx] if cell):
                return idx
        return -1

    def _map_columns(self, header: List[str]) -> Dict[str, Optional[int]]:
        """Map logical fault fields to column positions by header name"""
        col_map: Dict[str, Optional[int]] = {"code": None, "description": None, "status": None}
        columns_lower = {cell.lower().strip(): idx for idx, cell in enumerate(header) if cell}

        for key, patterns in (("code", CODE_HEADERS),
                              ("description", DESCRIPTION_HEADERS),
                              ("status", STATUS_HEADERS)):
            for pattern in patterns:
                if pattern in columns_lower:
                    col_map[key] = columns_lower[pattern]
                    break
        return col_map

    def _extract_xml(self, content: bytes):
        """
        Parse an XML report with ElementTree

        Elements carrying a code (attribute or child) become structured
        candidates; otherwise every text node is flattened into a line.
        """
        root = ET.fromstring(content)
        flat_lines: List[str] = []
        candidates = []

        for position, element in enumerate(root.iter(), 1):
            for value in element.attrib.values():
                if value and value.strip():
                    flat_lines.append(value.strip())
            if element.text and element.text.strip():
                flat_lines.append(element.text.strip())

            fields = self._xml_fields(element)
            code = self._first_field(fields, XML_CODE_NAMES)
            if code:
                description = self._first_field(fields, XML_DESCRIPTION_NAMES)
                if not description and element.text:
                    description = element.text.strip()
                candidates.append((
                    position,
                    code,
                    description or "",
                    self._first_field(fields, XML_STATUS_NAMES) or ""
                ))

        full_text = "\n".join(flat_lines)
        if candidates:
            return full_text, [], candidates
        return full_text, flat_lines, []

    def _xml_fields(self, element: ET.Element) -> Dict[str, str]:
        fields = {}
        for child in element:
            tag = child.tag.split("}")[-1].lower()
            if child.text and child.text.strip() and len(child) == 0:
                fields.setdefault(tag, child.text.strip())
        for name, value in element.attrib.items():
            fields.setdefault(name.split("}")[-1].lower(), value.strip())
        return fields

    def _first_field(self, fields: Dict[str, str], names) -> Optional[str]:
        for name in names:
            if fields.get(name):
                return fields[name]
        return None

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _extract_vehicle_info(self, text: str) -> Dict[str, Any]:
        """Best-effort vehicle identification; every field is optional"""
        vehicle_info: Dict[str, Any] = {}

        vin_match = re.search(r'VIN:\s*([A-Z0-9]{17})', text, re.IGNORECASE)
        if vin_match:
            vehicle_info["vin"] = vin_match.group(1).upper()

        mileage_match = MILEAGE_RE.search(text)
        if mileage_match:
            vehicle_info["mileage"] = int(re.sub(r'\D', '', mileage_match.group(1)))
            unit = mileage_match.group(2).lower()
            vehicle_info["mileage_unit"] = "km" if unit == "kilometers" else unit

        date_match = re.search(r'\b(\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}-\d{2}-\d{2})\b', text)
        if date_match:
            vehicle_info["scan_date"] = date_match.group(1)

        for key, pattern in (("make", r'^\s*Make:\s*(.+?)\s*$'),
                             ("model", r'^\s*Model:\s*(.+?)\s*$'),
                             ("chassis_type", r'Chassis\s+Type:\s*([A-Z0-9]+)')):
            match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE)
            if match:
                vehicle_info[key] = match.group(1)

        year_match = re.search(r'^\s*(?:Model\s+)?Year:\s*(\d{4})', text, re.IGNORECASE | re.MULTILINE)
        if year_match:
            vehicle_info["year"] = int(year_match.group(1))

        return vehicle_info

    def _extract_diagnostic_info(self, text: str, state: "_LineGrammar") -> Dict[str, Any]:
        diagnostic_info: Dict[str, Any] = {
            "total_errors": len(state.faults),
            "has_freeze_frame": bool(re.search(r'freeze frame', text, re.IGNORECASE)),
            "modules_scanned": len(set(ADDRESS_RE.findall(text))),
        }

        readiness_match = re.search(r'readiness:\s*(.+)', text, re.IGNORECASE)
        if readiness_match:
            diagnostic_info["readiness_status"] = readiness_match.group(1).strip()

        if state.sections:
            diagnostic_info["declared_faults"] = sum(declared for _, declared in state.sections)

        version_match = re.search(r'(?:VCDS|Scanner|Software)\s+Version:\s*(.+?)\s*$', text,
                                  re.IGNORECASE | re.MULTILINE)
        if version_match:
            diagnostic_info["scanner_version"] = version_match.group(1)

        return diagnostic_info

    def _detect_source(self, text: str, state: "_LineGrammar") -> str:
        if state.sections or re.search(r'\b(?:VCDS|VAG-COM)\b', text, re.IGNORECASE):
            return "VCDS"
        if state.obd_faults:
            return "OBD"
        return "Other"


class _LineGrammar:
    """
    Line-by-line fault extraction state

    Tracks the open VCDS fault section, the last VCDS fault (for indented
    detail lines) and the codes already seen.
    """

    def __init__(self, vag_anywhere: bool = False):
        self.faults: List[ParsedFault] = []
        self.errors: List[str] = []
        self.sections: List[Tuple[int, int]] = []  # (header line, declared count)
        self.obd_faults = 0
        self._by_code: Dict[str, ParsedFault] = {}
        self._vag_anywhere = vag_anywhere
        self._section_open = False
        self._section_header: Optional[Tuple[int, int]] = None
        self._section_extracted = 0
        self._last_vag: Optional[ParsedFault] = None

    def add_structured(self, line_no: Optional[int], code: str, description: str, status_text: str):
        """Add a fault candidate from a tabular row or an XML element"""
        code = (code or "").strip()
        if not code:
            return
        if not STRUCTURED_CODE_RE.match(code):
            self.errors.append(f"Line {line_no}: unrecognized fault entry: {code} {description}".rstrip())
            return
        status = detect_status(status_text) if status_text else detect_status(description)
        fault = self._add(code, description, status, line_no)
        if fault and code[0].upper() in "PCBU":
            self.obd_faults += 1

    def run(self, lines: List[str]):
        for line_no, line in enumerate(lines, 1):
            self._consume(line_no, line)
        self._close_section()

    def _consume(self, line_no: int, line: str):
        stripped = line.strip()
        if not stripped:
            return
        indented = line[:1].isspace()

        header = FAULT_SECTION_RE.match(line)
        if header:
            self._close_section()
            self._section_open = True
            self._section_header = (line_no, int(header.group(1)))
            self.sections.append(self._section_header)
            return

        if NO_FAULT_RE.match(line):
            self._close_section()
            self.sections.append((line_no, 0))
            return

        if self._section_open and SECTION_END_RE.match(line):
            self._close_section()
            return

        # PDF text extraction drops indentation, so detail lines are also recognised by shape
        if self._last_vag is not None and (indented or DETAIL_LINE_RE.match(stripped)):
            self._apply_detail(stripped)
            return

        if not indented:
            self._last_vag = None

        if NON_FAULT_LINE_RE.match(stripped):
            return

        if (self._section_open or self._vag_anywhere) and not indented:
            vag = VAG_FAULT_RE.match(stripped)
            if vag:
                if self._section_open:
                    self._section_extracted += 1
                # A repeated code still owns its detail lines
                self._last_vag = (self._add(vag.group(1), vag.group(2), detect_status(vag.group(2)), line_no)
                                  or self._by_code[vag.group(1).strip().upper()])
                return

        obd = OBD_FAULT_RE.match(stripped)
        if obd:
            if self._section_open:
                self._section_extracted += 1
            if self._add(obd.group(1), obd.group(2), detect_status(obd.group(2)), line_no):
                self.obd_faults += 1
            return

        if (self._section_open and not indented) or CODE_TOKEN_RE.match(stripped):
            self.errors.append(f"Line {line_no}: unrecognized fault entry: {stripped}")

    def _apply_detail(self, stripped: str):
        """Indented line following a VCDS fault: OBD equivalent and status words"""
        token = OBD_TOKEN_RE.search(stripped)
        if token and self._last_vag.obd_code is None:
            self._last_vag.obd_code = token.group(1).upper()
        status = detect_status(stripped)
        if status != "active":
            self._last_vag.status = status

    def _add(self, code: str, description: str, status: str, line_no: Optional[int]) -> Optional[ParsedFault]:
        key = code.strip().upper()
        if key in self._by_code:
            return None
        fault = ParsedFault(code=key, description=description, status=status, line=line_no)
        self._by_code[key] = fault
        self.faults.append(fault)
        return fault

    def _close_section(self):
        if self._section_header is not None:
            header_line, declared = self._section_header
            if self._section_extracted < declared:
                self.errors.append(
                    f"Line {header_line}: section declares {declared} faults "
                    f"but {self._section_extracted} were extracted"
                )
        self._section_open = False
        self._section_header = None
        self._section_extracted = 0
        self._last_vag = None


# Singleton instance
report_parser = ReportParser()
