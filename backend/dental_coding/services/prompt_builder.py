"""Prompt assembly for the treatment chat.

Builds the two prompts sent to the LLM:
- the detection prompt (codebook excerpt, full code reference, history,
  counting rules and the JSON schema the parser expects)
- the confirmation prompt used for the one-line summary
"""

from typing import Iterable, Sequence

from dental_coding.schemas.base import Category
from dental_coding.services.catalog import CatalogEntry, CodeCatalog

PROMPT_HISTORY_TURNS = 6

_ABBREVIATIONS = """\
- comp/composiet = composietvulling
- amal = amalgaamvulling
- wkb = wortelkanaalbehandeling
- ext/exo = extractie
- loco/verd = lokale verdoving
- bw = bitewing röntgen
- pano/OPT/OPG = panoramische röntgen
- CBCT = cone beam CT
- PA = periapicaal
- krn = kroon
- brg = brug
- dp = devitalisatie pulpa
- paro = parodontaal
- DPSI = Dutch Periodontal Screening Index
- MO/DO/MOD/MODP = vlaknotatie (M=mesiaal, O=occlusaal, D=distaal, B=buccaal, V=vestibulair, L=linguaal, P=palataal)
- ok/bk = boven/onderkaak
- chir = chirurgisch
- impl = implantaat
- fluor = fluoride applicatie
- detrg = detartrage (tandsteen verwijderen)
- sec car = secundaire cariës
- GIC = glasionomeer cement
- IRM = intermediate restorative material
- CaOH = calciumhydroxide"""

_COUNTING_RULES = """\
VLAKKEN TELLEN (CRUCIAAL VOOR VULLINGEN):
- Tel het aantal UNIEKE letters in de vlaknotatie
- O = 1 vlak → V91 (composiet) of V71 (amalgaam)
- MO, DO, OB, OL = 2 vlakken → V92 of V72
- MOD, MOB, DOB, MOL = 3 vlakken → V93 of V73
- MODP, MODB, MODBL = 4+ vlakken → V94 of V74
- Let op: "comp 46 MO" = V92 (2 vlakken), "comp 36 MOD" = V93 (3 vlakken)

KANALEN TELLEN (CRUCIAAL VOOR ENDO):
- 1 kanaal / 1k → E13
- 2 kanalen / 2k → E14
- 3 kanalen / 3k → E16
- 4+ kanalen / 4k → E17
- Incisieven/premolaren = meestal 1-2 kanalen
- Molaren bovenkaak = meestal 3-4 kanalen
- Molaren onderkaak = meestal 2-3 kanalen

TANDNUMMERS:
- FDI-notatie: 11-18 (rechtsboven), 21-28 (linksboven), 31-38 (linksonder), 41-48 (rechtsonder)
- Melkgebit: 51-55, 61-65, 71-75, 81-85
- "regio 36" = element 36 = tandnummer 36"""

_COMPANION_GUIDANCE = """\
BEGELEIDENDE CODES (voeg automatisch toe als logisch):
- Bij ELKE vulling (V-codes) → voeg A10 (verdoving) toe, tenzij expliciet "zonder verdoving" staat
- Bij ELKE extractie (H11, H16, H35) → voeg A10 (verdoving) toe
- Bij ELKE endo (E13, E14, E16, E17) → voeg A10 (verdoving) + X10 (röntgen) toe
- Bij kroonpreparatie → voeg A10 toe
- Bij chirurgische ingrepen → voeg A10 toe

CONTEXT-BEWUSTZIJN:
- Als de tandarts "dezelfde", "ook voor", "hetzelfde", "idem", "ook" zegt, verwijs dan naar de VORIGE suggesties in de chatgeschiedenis
- Bijvoorbeeld: "hetzelfde voor 37" → herhaal de laatst voorgestelde codes maar dan voor element 37
- "ook een vulling" → gebruik dezelfde vulling-specificaties als eerder besproken"""

_STRICT_RULES = """\
STRIKTE REGELS:
1. Detecteer ALLEEN verrichtingen die DAADWERKELIJK beschreven staan in de invoer (of via context uit eerdere berichten)
2. Geef bij elke code de FDI-tandnummers als die vermeld zijn
3. Tel vlakken NAUWKEURIG bij vullingen — dit bepaalt de juiste code
4. Tel kanalen NAUWKEURIG bij endo — dit bepaalt de juiste code
5. Voeg begeleidende codes toe (verdoving, röntgen) als de behandeling dat logisch vereist
6. Geef NOOIT dezelfde code + tandnummer combinatie dubbel
7. Gebruik quantity 1 tenzij expliciet meerdere sessies/injecties vermeld
8. Bij gebitsreiniging: tel het aantal keer 5 minuten voor de quantity van M03"""

_OUTPUT_SCHEMA = """\
Retourneer een JSON array:
[
  {
    "code": "NZA-code",
    "description": "Korte beschrijving",
    "toothNumbers": [36],
    "surfaces": "MO",
    "canals": null,
    "quantity": 1,
    "reasoning": "Waarom deze code: citeer het relevante stuk uit de invoer",
    "isCompanion": false
  }
]

- toothNumbers: array van FDI-nummers (leeg array als niet van toepassing)
- surfaces: string vlaknotatie of null als niet van toepassing
- canals: getal of null als niet van toepassing
- isCompanion: true als het een automatisch toegevoegde begeleidende code is

Retourneer [] als er geen verrichtingen staan.
Retourneer ALLEEN codes uit de beschikbare lijst."""


def _format_entry(entry: CatalogEntry) -> str:
    markers = ""
    if entry.requires_tooth:
        markers += ", per element"
    if entry.requires_surface:
        markers += ", per vlak"

    lines = [f"CODE: {entry.code} — {entry.description} (€{entry.tariff}{markers})"]
    if entry.examples:
        lines.append("  Voorbeelden: " + " | ".join(f'"{ex}"' for ex in entry.examples))
    if entry.keywords:
        lines.append("  Trefwoorden: " + ", ".join(sorted(entry.keywords)))
    if entry.companions:
        lines.append("  Begeleidende codes: " + ", ".join(entry.companions))
    return "\n".join(lines)


def build_codebook_section(catalog: CodeCatalog, categories: Iterable[Category]) -> str:
    """Codebook excerpt for the relevant categories."""
    return "\n\n".join(_format_entry(e) for e in catalog.entries_for(categories))


def build_codes_reference(catalog: CodeCatalog) -> str:
    """One line per active code: code, description, tariff, explanation."""
    lines = []
    for entry in sorted(catalog, key=lambda e: e.code):
        explanation = f" — {entry.explanation}" if entry.explanation else ""
        lines.append(f"{entry.code}: {entry.description} (€{entry.tariff}){explanation}")
    return "\n".join(lines)


def _history_section(history: Sequence[object]) -> str:
    recent = list(history)[-PROMPT_HISTORY_TURNS:]
    if not recent:
        return "(geen eerdere berichten)"

    lines = []
    for turn in recent:
        if isinstance(turn, dict):
            role, content = turn.get("role", ""), turn.get("content", "")
        else:
            role, content = getattr(turn, "role", ""), getattr(turn, "content", "")
        speaker = "TANDARTS" if role == "user" else "ASSISTENT"
        lines.append(f"{speaker}: {content}")
    return "\n".join(lines)


def build_chat_prompt(
    message: str,
    history: Sequence[object],
    codebook: str,
    reference: str,
    selected_teeth: Sequence[int] | None = None,
) -> str:
    """Detection prompt for Call #1."""
    context_line = ""
    if selected_teeth:
        context_line = "\nGESELECTEERDE ELEMENTEN: " + ", ".join(str(t) for t in selected_teeth)

    return f"""Je bent een expert Nederlands tandheelkundig declaratiesysteem en AI-assistent voor tandartsen. Je helpt bij het opstellen van behandelplannen door NZa prestatiecodes te detecteren uit natuurlijke taal.

CHATGESCHIEDENIS:
{_history_section(history)}

HUIDIGE INVOER VAN DE TANDARTS:
"{message}"
{context_line}

CODEBOEK MET VOORBEELDEN:
{codebook}

ALLE BESCHIKBARE CODES (met toelichting):
{reference}

AFKORTINGEN DIE TANDARTSEN GEBRUIKEN:
{_ABBREVIATIONS}

{_COUNTING_RULES}

{_COMPANION_GUIDANCE}

{_STRICT_RULES}

{_OUTPUT_SCHEMA}"""


def build_summary_prompt(message: str, suggestions: Sequence[object]) -> str:
    """Confirmation prompt for Call #2.

    ``suggestions`` items need ``nza_code``, ``description`` and
    ``tooth_numbers`` attributes.
    """
    lines = []
    for s in suggestions:
        teeth = getattr(s, "tooth_numbers", [])
        teeth_str = f" (element {', '.join(str(t) for t in teeth)})" if teeth else ""
        lines.append(f"- {s.nza_code}: {s.description}{teeth_str}")

    detected = "\n".join(lines)
    return f"""Je bent een tandheelkundig AI-assistent. De tandarts typte: "{message}"

Hieruit zijn deze codes gedetecteerd:
{detected}

Geef een KORTE bevestiging (1-2 zinnen) in DEZELFDE TAAL als de invoer van de tandarts. Wees bondig en professioneel. Noem de belangrijkste verrichtingen. Gebruik geen markdown."""
