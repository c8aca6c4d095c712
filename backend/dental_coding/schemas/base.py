"""Base schemas and enums for the dental procedure coding assistant."""

from enum import Enum


class Category(str, Enum):
    """Clinical domain grouping NZa tariff codes."""

    VERDOVING = "VERDOVING"  # Anesthesia
    CONSULTATIE = "CONSULTATIE"  # Consultation and diagnostics
    ENDO = "ENDO"  # Endodontics
    GNATHOLOGIE = "GNATHOLOGIE"  # Jaw joint / occlusion
    IMPLANTOLOGIE_CHIR = "IMPLANTOLOGIE_CHIR"  # Implant surgery
    ORTHODONTIE = "ORTHODONTIE"
    IMPLANTOLOGIE_PROT = "IMPLANTOLOGIE_PROT"  # Implant prosthetics
    PREVENTIE = "PREVENTIE"  # Prevention and periodontal cleaning
    PROTHETIEK = "PROTHETIEK"  # Removable prosthetics
    KROON = "KROON"  # Crown and bridge
    KAAKCHIRURGIE = "KAAKCHIRURGIE"  # Oral surgery
    VULLING = "VULLING"  # Fillings
    RONTGEN = "RONTGEN"  # Radiography
    EXTRACTIE = "EXTRACTIE"  # Extraction


class Confidence(str, Enum):
    """Trust estimate for a suggested code."""

    HIGH = "high"
    MEDIUM = "medium"


class ParseFailureReason(str, Enum):
    """Why an LLM response could not be turned into candidates."""

    EMPTY = "empty"
    INVALID_JSON = "invalid_json"
    NOT_AN_ARRAY = "not_an_array"
