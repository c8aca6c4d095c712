"""Category pre-filter for the detection prompt.

Maps clinician free text to the NZa categories worth sending to the LLM.
Only codebook entries of the matched categories are included in the
prompt, which keeps it small for the common single-procedure note.

Rules, applied in order:
1. A category is included when any of its triggers occurs in the text
   (case-insensitive substring match).
2. Any invasive category pulls in VERDOVING (anesthesia).
3. CONSULTATIE is always included.
4. When nothing beyond the forced categories matched, every category is
   returned so unfamiliar vocabulary still reaches the full codebook.
"""

from typing import Iterable

from dental_coding.schemas.base import Category

# Lower-case triggers. A trigger belongs to exactly one category.
CATEGORY_TRIGGERS: dict[Category, tuple[str, ...]] = {
    Category.VERDOVING: (
        "verdoving", "loco", "anesthesie", "geleidingsverdoving", "sedatie",
        "lachgas", "verd",
    ),
    Category.CONSULTATIE: (
        "consult", "controle", "onderzoek", "recall", "verwijzing", "intake",
        "telefonisch", "spoed", "behandelplan", "instructie", "mondverzorging",
    ),
    Category.ENDO: (
        "endo", "wkb", "wortelkanaal", "pulpa", "extirpatie", "pulpitis",
        "kanaal", "kanalen", "devitalisatie", "trepanatie", "mta",
        "revascularisatie", "apicoectomie", "hemisectie", "open cavum",
        "resorptie",
    ),
    Category.GNATHOLOGIE: (
        "gnathologie", "tmj", "kaakgewricht", "opbeetplaat", "splint",
        "bruxisme", "klikken", "crepitatie",
    ),
    Category.IMPLANTOLOGIE_CHIR: (
        "implantaat", "impl", "implantatie", "sinuslift", "botopbouw",
        "augmentatie", "peri-implantitis", "membraan", "explantatie", "fixture",
    ),
    Category.ORTHODONTIE: (
        "ortho", "bracket", "beugel", "retainer", "aligner", "invisalign",
        "draadwissel", "debonding", "minischroef",
    ),
    Category.IMPLANTOLOGIE_PROT: (
        "abutment", "healing abutment", "mesostructuur", "impl kroon",
        "implantaatkroon", "steg", "drukknop", "click prothese", "locator",
    ),
    Category.PREVENTIE: (
        "tandsteen", "reiniging", "gebitsreiniging", "poetsinstructie",
        "fluoride", "fluor", "sealing", "sealant", "paro", "dpsi",
        "parodontaal", "dieptereiniging", "scaling", "mondhygiëne", "preventie",
    ),
    Category.PROTHETIEK: (
        "prothese", "kunstgebit", "rebasen", "reparatie proth", "frameprothese",
        "immediaatprothese", "overkappingsprothese", "klammer", "prothetiek",
    ),
    Category.KROON: (
        "kroon", "brug", "veneer", "facing", "inlay", "onlay", "overlay",
        "stiftkroon", "maryland", "recementation", "verlijmen", "prep",
        "preparatie", "kleurbepaling", "wax-up",
    ),
    Category.KAAKCHIRURGIE: (
        "chirurgisch", "operatief", "flap", "mucoperiostlap", "cystectomie",
        "biopsie", "frenulectomie", "torus", "exostose", "alveoloplastiek",
        "drainage", "abces", "hechting", "hechtingen", "fractuur", "repositie",
        "kaakchirurgie",
    ),
    Category.VULLING: (
        "vulling", "comp", "composiet", "amalgaam", "amal", "glasionomeer",
        "gic", "compomeer", "opbouw", "stift", "facet", "hoekopbouw",
        "splinting", "cusp", "cariës", "excavatie", "provisorisch", "tijdelijk",
    ),
    Category.RONTGEN: (
        "röntgen", "rontgen", "bitewing", "bw", "pano", "opt", "opg", "cbct",
        "periapicaal", "pa foto", "cephalometrisch", "ceph", "foto", "opname",
    ),
    Category.EXTRACTIE: (
        "extractie", "ext", "trekken", "exo", "melkelement", "melktand",
    ),
}

INVASIVE_CATEGORIES: frozenset[Category] = frozenset({
    Category.VULLING,
    Category.ENDO,
    Category.EXTRACTIE,
    Category.KROON,
    Category.KAAKCHIRURGIE,
    Category.IMPLANTOLOGIE_CHIR,
})

# At or below this many matches only the forced categories were hit
WIDEN_THRESHOLD = 2

CLASSIFIER_HISTORY_TURNS = 4


def match_categories(text: str) -> set[Category]:
    """Categories with at least one trigger in ``text`` (no forced rules)."""
    lowered = text.lower()
    return {
        category
        for category, triggers in CATEGORY_TRIGGERS.items()
        if any(trigger in lowered for trigger in triggers)
    }


def classify_with_flag(text: str) -> tuple[set[Category], bool]:
    """Classify text, also reporting whether the result was widened."""
    matched = match_categories(text)

    if matched & INVASIVE_CATEGORIES:
        matched.add(Category.VERDOVING)
    matched.add(Category.CONSULTATIE)

    if len(matched) <= WIDEN_THRESHOLD:
        return set(Category), True
    return matched, False


def classify(text: str) -> set[Category]:
    """Relevant categories for ``text``."""
    categories, _ = classify_with_flag(text)
    return categories


def classifier_text(message: str, history: Iterable[object] = ()) -> str:
    """Message plus the last few history turn contents, space-joined.

    History items may be dicts or objects with a ``content`` attribute.
    """
    turns = list(history)[-CLASSIFIER_HISTORY_TURNS:]
    contents = []
    for turn in turns:
        content = turn.get("content", "") if isinstance(turn, dict) else getattr(turn, "content", "")
        contents.append(content or "")
    return " ".join([message, *contents])
