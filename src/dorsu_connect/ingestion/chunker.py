"""
Chunker Module - Turn the university dataset into knowledge chunks.
===================================================================

Walks the nested ``dorsu_data.json`` document and emits one searchable
``KnowledgeChunk`` per meaningful unit:

- Offices, people, statistics rows, timeline events, services, faculties and
  programs each become their own chunk with natural-language text
- Long narratives are split into groups of sentences
- Short string lists (core values, mandates) are kept together
- Every chunk carries keywords and the dataset field it came from

Chunk IDs are derived from the field path and text, so re-chunking an
unchanged dataset yields the same IDs.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from dorsu_connect.ingestion.keywords import extract_keywords
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.logging import get_logger
from dorsu_connect.shared.schemas import KnowledgeChunk
from dorsu_connect.shared.utils import compute_hash, humanize_key, slugify

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Chunking Configuration
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ChunkerConfig:
    """Configuration for dataset chunking."""

    min_text_length: int = 20
    long_text_threshold: int = 1500
    sentences_per_part: int = 3
    min_part_length: int = 50
    source_name: str = "dorsu_data.json"

    @classmethod
    def from_settings(cls) -> "ChunkerConfig":
        settings = get_settings()
        return cls(
            min_text_length=settings.chunking.min_text_length,
            long_text_threshold=settings.chunking.long_text_threshold,
            sentences_per_part=settings.chunking.sentences_per_part,
            min_part_length=settings.chunking.min_part_length,
            source_name=settings.refresh.source_name,
        )


# Keys that name a section wherever they appear
SECTION_KEYS = frozenset(
    {
        "history",
        "leadership",
        "programs",
        "faculties",
        "enrollment",
        "visionMission",
        "mandate",
        "qualityPolicy",
        "studentOrganizations",
        "annualAccomplishmentReports",
        "studentResources",
        "offices",
        "detailedOfficeServices",
        "additionalOfficesAndCenters",
        "organizationalStructure/DOrSUOfficials2025",
        "importantLinks",
    }
)

HISTORY_OBJECT_TYPES = {
    "narrative": "history_narrative",
    "heritage": "heritage_info",
    "conversionProcess": "conversion_process",
    "currentMission": "current_mission",
}

STUDENT_CATEGORIES = (
    "returningStudents",
    "continuingStudents",
    "transferringStudents",
    "secondDegreeStudents",
    "incomingFirstYearStudents",
)

LEADERSHIP_KEYS = (
    "vicePresidents",
    "deans",
    "directors",
    "chancellor",
    "boardOfRegents",
    "executives",
)

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_ISO_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?")


# ─────────────────────────────────────────────────────────────────────────────
# Sentence Grouping
# ─────────────────────────────────────────────────────────────────────────────


class SentenceGrouper:
    """
    Splits long narrative text into groups of consecutive sentences.

    Trailing text without terminal punctuation is not a sentence and is
    dropped, as are groups too short to be useful on their own.
    """

    SENTENCE = re.compile(r"[^.!?]+[.!?]+")

    def __init__(self, config: ChunkerConfig):
        self.config = config

    def split(self, text: str) -> list[tuple[int, str]]:
        """
        Split text into ``(part_number, text)`` groups.

        Example:
            >>> grouper.split("One. Two. Three. Four.")  # doctest: +SKIP
            [(1, 'One. Two. Three.'), (2, 'Four.')]
        """
        sentences = self.SENTENCE.findall(text) or [text]
        size = self.config.sentences_per_part
        parts = []
        for start in range(0, len(sentences), size):
            group = " ".join(s.strip() for s in sentences[start : start + size]).strip()
            if len(group) > self.config.min_part_length:
                parts.append((start // size + 1, group))
        return parts


# ─────────────────────────────────────────────────────────────────────────────
# Object → Text
# ─────────────────────────────────────────────────────────────────────────────


def _join(items: Any, sep: str = ", ") -> str:
    if isinstance(items, list):
        return sep.join(str(i) for i in items)
    return str(items)


def _office_text(obj: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    text = f"{obj['acronym']} ({obj['fullName']})."
    facebook = obj.get("facebook") or (obj.get("socialMedia") or {}).get("facebook")
    for label, value in (
        ("Head", obj.get("head")),
        ("Email", obj.get("email")),
        ("Phone", obj.get("phone")),
        ("Location", obj.get("location")),
        ("Website", obj.get("website")),
        ("Link", obj.get("link")),
        ("Facebook", facebook),
    ):
        if value:
            text += f" {label}: {value}."
    if obj.get("description"):
        text += f" {obj['description']}"
    if obj.get("services"):
        text += f" Services: {_join(obj['services'])}."

    metadata = {
        "acronym": obj["acronym"],
        "fullName": obj["fullName"],
        "head": obj.get("head"),
        "email": obj.get("email"),
        "phone": obj.get("phone"),
        "location": obj.get("location"),
        "website": obj.get("website") or obj.get("link"),
        "facebook": facebook,
    }
    return text, metadata


def _person_text(obj: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    name = obj.get("name") or obj.get("fullName")
    position = obj.get("position") or obj.get("title") or obj.get("role")
    text = f"{name}, {position}."
    for label in ("department", "faculty", "campus", "email"):
        if obj.get(label):
            text += f" {label.capitalize()}: {obj[label]}."

    education = obj.get("education")
    if isinstance(education, dict):
        if education.get("institution"):
            text += f" Education: {education['institution']}."
        degrees = education.get("degrees")
        if isinstance(degrees, list):
            rendered = []
            for degree in degrees:
                if not isinstance(degree, dict):
                    rendered.append(str(degree))
                    continue
                part = degree.get("degree", "")
                if degree.get("honor"):
                    part += f" ({degree['honor']})"
                if degree.get("scholarship"):
                    part += f", {degree['scholarship']}"
                rendered.append(part)
            if any(rendered):
                text += f" Degrees: {'; '.join(rendered)}."

    if obj.get("expertise"):
        text += f" Expertise: {_join(obj['expertise'])}."
    if obj.get("achievements"):
        text += f" Achievements: {_join(obj['achievements'], '. ')}."
    if obj.get("currentRole"):
        text += f" Current Role: {obj['currentRole']}."

    metadata = {
        "name": name,
        "position": position,
        "department": obj.get("department"),
        "faculty": obj.get("faculty"),
        "email": obj.get("email"),
        "education": education,
        "expertise": obj.get("expertise"),
        "achievements": obj.get("achievements"),
        "currentRole": obj.get("currentRole"),
    }
    return text, metadata


def _stats_text(obj: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    text = ""
    if obj.get("year"):
        text += f"Year {obj['year']}: "
    if obj.get("campus"):
        text += f"{obj['campus']}: "
    stats = []
    for field, label in (
        ("numberOfApplicants", "applicants"),
        ("numberOfPassers", "passers"),
        ("passingRate", "passing rate"),
        ("numberOfEnrolledApplicants", "enrolled"),
        ("students", "students"),
    ):
        if obj.get(field):
            stats.append(f"{obj[field]} {label}")
    text += ", ".join(stats) + "."
    return text, dict(obj)


def _history_text(obj: dict[str, Any]) -> str:
    text = ""
    if obj.get("description"):
        text += f"{obj['description']}. "
    if isinstance(obj.get("keyLeaders"), list):
        leaders = [
            f"{leader['name']} ({leader['role']})"
            if isinstance(leader, dict) and leader.get("name") and leader.get("role")
            else str(leader)
            for leader in obj["keyLeaders"]
        ]
        text += f"Key leaders: {', '.join(leaders)}. "
    if isinstance(obj.get("stakeholders"), list):
        text += f"Stakeholders: {_join(obj['stakeholders'])}. "
    if isinstance(obj.get("complianceAreas"), list):
        text += f"Compliance areas: {_join(obj['complianceAreas'])}. "
    if isinstance(obj.get("sites"), list):
        for site in obj["sites"]:
            if isinstance(site, dict):
                text += site.get("name") or "Site"
                if site.get("designation"):
                    text += f" ({site['designation']})"
                if site.get("significance"):
                    text += f": {site['significance']}"
                text += ". "
    if obj.get("name") and obj.get("designation") and obj.get("significance"):
        text += f"{obj['name']} ({obj['designation']}): {obj['significance']}. "
    return text.strip()


def object_to_text(obj: Any) -> tuple[str, dict[str, Any]]:
    """
    Render a dataset value as natural-language text.

    Returns:
        Tuple of (text, structured metadata for keyword extraction)

    Example:
        >>> object_to_text({"acronym": "OSA", "fullName": "Office of Student Affairs"})[0]
        'OSA (Office of Student Affairs).'
    """
    if isinstance(obj, list):
        return "\n".join(object_to_text(item)[0] for item in obj), {}
    if not isinstance(obj, dict):
        return str(obj), {}

    if obj.get("acronym") and obj.get("fullName"):
        return _office_text(obj)

    if (obj.get("name") or obj.get("fullName")) and (
        obj.get("position") or obj.get("title") or obj.get("role")
    ):
        return _person_text(obj)

    if any(obj.get(k) for k in ("year", "numberOfApplicants", "numberOfPassers", "passingRate", "students")):
        return _stats_text(obj)

    history_fields = (
        "description", "keyLeaders", "stakeholders", "complianceAreas",
        "sites", "name", "designation", "significance",
    )
    if any(obj.get(k) for k in history_fields):
        text = _history_text(obj)
        if text:
            return text, dict(obj)

    entries = []
    for key, value in obj.items():
        natural_key = humanize_key(key)
        if isinstance(value, dict):
            nested, _ = object_to_text(value)
            if nested:
                entries.append(f"{natural_key}: {nested}")
        elif isinstance(value, list):
            if value:
                rendered = ", ".join(object_to_text(item)[0] for item in value)
                entries.append(f"{natural_key}: {rendered}")
        else:
            entries.append(f"{natural_key}: {value}")
    return ". ".join(entries), dict(obj)


def _natural_date(value: Any) -> str:
    """``2018-05-28`` → ``May 28, 2018 (2018-05-28)``; other values unchanged."""
    date_str = str(value)
    match = _ISO_DATE_PREFIX.match(date_str)
    if not match:
        return date_str
    year, month, day = match.groups()
    month_index = int(month)
    if not 1 <= month_index <= 12:
        return date_str
    month_name = MONTHS[month_index - 1]
    if day:
        return f"{month_name} {int(day)}, {year} ({date_str})"
    return f"{month_name} {year} ({date_str})"


# ─────────────────────────────────────────────────────────────────────────────
# Knowledge Chunker
# ─────────────────────────────────────────────────────────────────────────────


class KnowledgeChunker:
    """
    Converts the nested university dataset into knowledge chunks.

    Example:
        >>> chunker = KnowledgeChunker()
        >>> chunks = chunker.parse(load_json(data_file))
        >>> chunks[0].section
        'history'
    """

    def __init__(self, config: Optional[ChunkerConfig] = None):
        self.config = config or ChunkerConfig.from_settings()
        self.grouper = SentenceGrouper(self.config)
        self._chunks: list[KnowledgeChunk] = []
        self._ids: set[str] = set()

    # ── public ──────────────────────────────────────────────────────────────

    def parse(self, data: Any, source: Optional[str] = None) -> list[KnowledgeChunk]:
        """
        Parse a dataset document into chunks.

        Args:
            data: Parsed JSON document (top-level object)
            source: Source label stored in chunk metadata

        Returns:
            List of chunks in document order
        """
        if source:
            self.config.source_name = source
        self._chunks = []
        self._ids = set()

        if isinstance(data, dict):
            self._process_object(data, "", "general")
        else:
            logger.warning(f"Dataset root is {type(data).__name__}, expected an object")

        logger.info(f"Generated {len(self._chunks)} chunks from {self.config.source_name}")
        return self._chunks

    # ── chunk creation ──────────────────────────────────────────────────────

    def _make_id(self, section: str, field: str, text: str) -> str:
        base = f"{slugify(section, 24)}_{slugify(field)}_{compute_hash(f'{field}|{text}')[:12]}"
        chunk_id = base
        suffix = 1
        while chunk_id in self._ids:
            suffix += 1
            chunk_id = f"{base}_{suffix}"
        self._ids.add(chunk_id)
        return chunk_id

    def _add(
        self,
        text: str,
        section: str,
        chunk_type: str,
        field: str,
        category: Optional[str] = None,
        keyword_meta: Optional[dict[str, Any]] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        text = text.strip()
        if not text:
            return
        metadata: dict[str, Any] = {
            "source": self.config.source_name,
            "field": field,
            "section": section,
        }
        if extra:
            metadata.update({k: v for k, v in extra.items() if v is not None})

        self._chunks.append(
            KnowledgeChunk(
                id=self._make_id(section, field, text),
                content=text,
                text=text,
                section=section,
                type=chunk_type,
                category=str(category if category is not None else section),
                keywords=extract_keywords(text, keyword_meta),
                metadata=metadata,
            )
        )

    # ── traversal ───────────────────────────────────────────────────────────

    def _process_object(self, obj: dict[str, Any], prefix: str, section: str) -> None:
        for key, value in obj.items():
            full_key = f"{prefix}.{key}" if prefix else key

            new_section = section
            if not prefix or key in SECTION_KEYS:
                new_section = key
            if key == "history" or "history" in prefix:
                new_section = "history"

            if self._handle_special(key, value, obj, full_key, prefix, new_section):
                continue

            self._process_value(value, full_key, new_section)

    def _handle_special(
        self,
        key: str,
        value: Any,
        parent: dict[str, Any],
        full_key: str,
        prefix: str,
        section: str,
    ) -> bool:
        """Emit chunks for known object shapes; True when ``value`` was consumed."""
        if section == "leadership" and key == "president" and isinstance(value, dict):
            text, meta = object_to_text(value)
            if len(text) > self.config.min_text_length:
                extra = {"name": value.get("name"), "title": value.get("title"), **meta}
                self._add(text, section, "president", key, "president", meta, extra)
                return True

        if section == "history":
            if key in HISTORY_OBJECT_TYPES and isinstance(value, dict):
                text, meta = object_to_text(value)
                if len(text) > self.config.min_text_length:
                    self._add(text, section, HISTORY_OBJECT_TYPES[key], key, key, meta, meta)
                    return True
            if key == "charterMandates" and isinstance(value, list) and value:
                text = f"Charter Mandates: {_join(value)}."
                self._add(
                    text, section, "charter_mandates", key, "charterMandates",
                    extra={"mandateCount": len(value)},
                )
                return True

        if key == "importantLinks" and isinstance(value, dict):
            self._add_links(value)
            return True

        if isinstance(value, dict) and value.get("acronym") and value.get("fullName"):
            text, meta = object_to_text(value)
            self._add(text, section, "office_info", full_key, value["acronym"], meta, meta)
            return True

        if isinstance(value, dict) and value.get("name") and value.get("position"):
            text, meta = object_to_text(value)
            self._add(text, section, "leadership_position", full_key, value["position"], meta, meta)
            return True

        if (
            key == "requirements"
            and isinstance(value, list)
            and value
            and "admission" in full_key.lower()
        ):
            self._add_requirements(value, parent, full_key, prefix, section)
            return True

        if (
            section == "programs"
            and isinstance(value, dict)
            and isinstance(value.get("programs"), list)
        ):
            self._add_programs(key, value)
            return True

        return False

    def _add_links(self, links: dict[str, Any]) -> None:
        text = "DOrSU Important Links and Resources. "
        for field, label in (
            ("officialWebsite", "Official Website"),
            ("locationMap", "Location Map"),
            ("universitySeal", "University Seal"),
            ("universityHymn", "University Hymn"),
        ):
            if links.get(field):
                text += f"{label}: {links[field]}. "
        offices = links.get("offices")
        if isinstance(offices, dict):
            for acronym, link in offices.items():
                if isinstance(link, str):
                    text += f"{acronym} Website: {link}. "
                elif isinstance(link, dict):
                    if link.get("website"):
                        text += f"{acronym} Website: {link['website']}. "
                    if link.get("facebook"):
                        text += f"{acronym} Facebook: {link['facebook']}. "
        self._add(
            text,
            "importantLinks",
            "important_links",
            "importantLinks",
            "website_resources",
            {"officialWebsite": links.get("officialWebsite")},
            dict(links),
        )

    def _add_requirements(
        self,
        requirements: list[Any],
        parent: dict[str, Any],
        full_key: str,
        prefix: str,
        section: str,
    ) -> None:
        student_category = next(
            (part for part in full_key.split(".") if part in STUDENT_CATEGORIES), ""
        )
        if not student_category:
            student_category = next((c for c in STUDENT_CATEGORIES if c in prefix), "")
        category_name = str(parent.get("category") or "")

        numbered = " ".join(f"{i}. {req}" for i, req in enumerate(requirements, start=1))
        if category_name:
            text = f"{category_name}. Requirements: {numbered}"
        else:
            text = f"Admission Requirements: {numbered}"

        meta = {
            "studentCategory": student_category,
            "categoryName": category_name,
            "requirementCount": len(requirements),
            "requirements": requirements,
        }
        self._add(
            text,
            section,
            "admission_requirements",
            full_key,
            student_category or "admission_requirements",
            meta,
            meta,
        )

    def _add_programs(self, faculty_code: str, faculty: dict[str, Any]) -> None:
        faculty_name = faculty.get("faculty") or faculty_code
        for index, program in enumerate(faculty["programs"]):
            if not isinstance(program, dict):
                continue
            name = program.get("name") or "Unnamed Program"
            code = program.get("code") or ""
            accreditation = program.get("accreditation") or "N/A"
            text = f"{code} - {name}. Faculty: {faculty_name}. Accreditation: {accreditation}."
            meta = {
                "programCode": code,
                "programName": name,
                "facultyCode": faculty_code,
                "facultyName": faculty_name,
                "accreditation": accreditation,
                "index": index,
            }
            self._add(
                text,
                "programs",
                "academic_program",
                f"programs.{faculty_code}",
                faculty_code.lower(),
                meta,
                meta,
            )

    def _process_value(self, value: Any, key: str, section: str) -> None:
        if isinstance(value, str):
            self._process_string(value, key, section)
        elif isinstance(value, list):
            self._process_list(value, key, section)
        elif isinstance(value, dict):
            self._process_object(value, key, section)

    def _process_string(self, value: str, key: str, section: str) -> None:
        if len(value) <= self.config.min_text_length:
            return
        if len(value) <= self.config.long_text_threshold:
            self._add(value, section, "text", key)
            return
        for part_number, part in self.grouper.split(value):
            self._add(part, section, "text_chunk", key, extra={"partNumber": part_number})

    def _process_list(self, items: list[Any], key: str, section: str) -> None:
        if not items:
            return

        name = key.rsplit(".", 1)[-1]
        first = items[0]

        if not isinstance(first, dict):
            self._process_string_list(items, key, name, section)
            return

        if "offices" in name or "Office" in name or (first.get("acronym") and first.get("fullName")):
            self._add_each(items, key, section, self._office_chunk(name))
        elif any(k in name for k in LEADERSHIP_KEYS) or (first.get("position") and first.get("name")):
            self._add_each(items, key, section, self._leadership_chunk(name))
        elif (
            "statistics" in name.lower()
            or "enrollment" in name.lower()
            or any(first.get(k) for k in ("year", "campus", "semester"))
        ):
            self._add_each(items, key, section, self._statistics_chunk)
        elif "timeline" in name.lower() or first.get("date") or first.get("event"):
            timeline_section = "history" if name == "timeline" or section == "history" else section
            self._add_each(items, key, timeline_section, self._timeline_chunk)
        elif "services" in name or ((first.get("service") or first.get("name")) and first.get("description")):
            self._add_each(items, key, section, self._service_chunk)
        elif name == "faculties" or (
            first.get("code")
            and first.get("name")
            and (str(first["code"]).startswith("F") or "Faculty" in str(first["name"]))
        ):
            self._add_each(items, key, section, self._faculty_chunk)
        else:
            for index, item in enumerate(items):
                if isinstance(item, dict):
                    self._process_object(item, f"{key}[{index}]", section)
                elif isinstance(item, str) and len(item) > self.config.min_text_length:
                    self._add(item, section, "list_item", key, extra={"index": index})

    def _process_string_list(self, items: list[Any], key: str, name: str, section: str) -> None:
        strings = [str(item) for item in items if item is not None and not isinstance(item, (dict, list))]
        long_items = [(i, s) for i, s in enumerate(strings) if len(s) > self.config.min_text_length]
        if long_items:
            for index, item in long_items:
                self._add(item, section, "list_item", key, extra={"index": index})
        elif strings:
            text = f"{humanize_key(name).capitalize()}: {', '.join(strings)}."
            self._add(text, section, "structured_list", key, extra={"itemCount": len(strings)})

    def _add_each(self, items: list[Any], key: str, section: str, build) -> None:  # type: ignore[no-untyped-def]
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            text, chunk_type, category, keyword_meta, extra = build(item)
            self._add(text, section, chunk_type, key, category, keyword_meta, {"index": index, **extra})

    # ── per-item builders: (text, type, category, keyword metadata, extra) ──

    @staticmethod
    def _office_chunk(name: str):  # type: ignore[no-untyped-def]
        office_type = "office_info"
        if "studentServices" in name:
            office_type = "student_services_office"
        if "administrative" in name:
            office_type = "administrative_office"
        if "academic" in name:
            office_type = "academic_office"

        def build(item: dict[str, Any]):  # type: ignore[no-untyped-def]
            text, meta = object_to_text(item)
            return text, office_type, item.get("acronym"), meta, meta

        return build

    @staticmethod
    def _leadership_chunk(name: str):  # type: ignore[no-untyped-def]
        leadership_type = "leadership_position"
        if "vicePresident" in name:
            leadership_type = "vice_president"
        if "dean" in name:
            leadership_type = "dean"
        if "director" in name:
            leadership_type = "director"
        if "chancellor" in name:
            leadership_type = "chancellor"

        def build(item: dict[str, Any]):  # type: ignore[no-untyped-def]
            text, meta = object_to_text(item)
            return text, leadership_type, item.get("position"), meta, meta

        return build

    @staticmethod
    def _statistics_chunk(item: dict[str, Any]):  # type: ignore[no-untyped-def]
        text, meta = object_to_text(item)
        if item.get("year"):
            stats_type, category = "yearly_statistics", f"year_{item['year']}"
        elif item.get("campus"):
            stats_type = "campus_statistics"
            category = re.sub(r"\s+", "_", str(item["campus"]).lower())
        elif item.get("semester"):
            stats_type, category = "semester_statistics", f"semester_{item['semester']}"
        else:
            stats_type, category = "statistics", None
        return text, stats_type, category, meta, meta

    @staticmethod
    def _timeline_chunk(item: dict[str, Any]):  # type: ignore[no-untyped-def]
        text = ""
        if item.get("date"):
            text += f"{_natural_date(item['date'])}: "
        for field in ("event", "details", "significance"):
            if item.get(field):
                text += f"{item[field]}. "
        for field, label in (
            ("keyPerson", "Key person"),
            ("legalBasis", "Legal basis"),
            ("signedBy", "Signed by"),
            ("houseBill", "House Bill"),
            ("senateBill", "Senate Bill"),
            ("donor", "Donor"),
        ):
            if item.get(field):
                text += f"{label}: {item[field]}. "

        extra = {
            field: item.get(field)
            for field in ("date", "event", "keyPerson", "legalBasis", "signedBy", "houseBill", "senateBill", "donor")
        }
        keyword_meta = {"date": item.get("date"), "event": item.get("event")}
        return text, "timeline_event", item.get("date") or "historical_event", keyword_meta, extra

    @staticmethod
    def _service_chunk(item: dict[str, Any]):  # type: ignore[no-untyped-def]
        service_name = item.get("service") or item.get("name") or "Service"
        text = f"{service_name}: {item.get('description') or ''}"
        category = re.sub(r"\s+", "_", str(service_name).lower())
        return text, "service_offering", category, {"service": service_name}, {"serviceName": service_name}

    @staticmethod
    def _faculty_chunk(item: dict[str, Any]):  # type: ignore[no-untyped-def]
        code = str(item.get("code") or "")
        name = item.get("name") or "Faculty"
        text = f"{code} - {name}."
        meta = {"facultyCode": code, "facultyName": name}
        return text, "faculty", code.lower(), meta, meta


# ─────────────────────────────────────────────────────────────────────────────
# Convenience Functions
# ─────────────────────────────────────────────────────────────────────────────


def parse_dataset(data: Any, source: Optional[str] = None) -> list[KnowledgeChunk]:
    """Chunk a dataset document with default settings."""
    return KnowledgeChunker().parse(data, source=source)
