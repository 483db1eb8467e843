"""Turn free-text questions into PubMed queries with MeSH terms.

Known conditions are matched first and emitted as their MeSH heading. When
none match, filler phrasing and stopwords are removed and the remaining
words are looked up in a small term dictionary. If nothing maps, the trimmed
query is sent as-is.
"""
from __future__ import annotations

import re

# Most specific phrases first; a matched span is consumed before later checks.
CONDITION_TERMS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("triple negative breast cancer", "triple-negative breast cancer", "tnbc"), '"Triple Negative Breast Neoplasms"[Mesh]'),
    (("breast cancer",), '"Breast Neoplasms"[Mesh]'),
    (("non-small cell lung cancer", "nsclc"), '"Carcinoma, Non-Small-Cell Lung"[Mesh]'),
    (("lung cancer",), '"Lung Neoplasms"[Mesh]'),
    (("prostate cancer",), '"Prostatic Neoplasms"[Mesh]'),
    (("colorectal cancer", "colon cancer"), '"Colorectal Neoplasms"[Mesh]'),
    (("pancreatic cancer",), '"Pancreatic Neoplasms"[Mesh]'),
    (("type 2 diabetes", "type ii diabetes", "t2dm", "t2d"), '"Diabetes Mellitus, Type 2"[Mesh]'),
    (("type 1 diabetes", "type i diabetes", "t1dm", "t1d"), '"Diabetes Mellitus, Type 1"[Mesh]'),
    (("diabetes",), '"Diabetes Mellitus"[Mesh]'),
    (("long covid", "post-covid"), '"Post-Acute COVID-19 Syndrome"[Mesh]'),
    (("covid-19", "covid", "sars-cov-2", "coronavirus disease 2019"), '"COVID-19"[Mesh]'),
    (("alzheimer's disease", "alzheimers disease", "alzheimer's", "alzheimer"), '"Alzheimer Disease"[Mesh]'),
    (("parkinson's disease", "parkinsons disease", "parkinson's", "parkinson"), '"Parkinson Disease"[Mesh]'),
    (("multiple sclerosis",), '"Multiple Sclerosis"[Mesh]'),
    (("heart failure",), '"Heart Failure"[Mesh]'),
    (("hypertension", "high blood pressure"), '"Hypertension"[Mesh]'),
    (("myocardial infarction", "heart attack"), '"Myocardial Infarction"[Mesh]'),
    (("tuberculosis",), '"Tuberculosis"[Mesh]'),
    (("hiv",), '"HIV Infections"[Mesh]'),
    (("malaria",), '"Malaria"[Mesh]'),
    (("influenza", "flu"), '"Influenza, Human"[Mesh]'),
    (("asthma",), '"Asthma"[Mesh]'),
    (("autism", "autism spectrum disorder"), '"Autism Spectrum Disorder"[Mesh]'),
    (("schizophrenia",), '"Schizophrenia"[Mesh]'),
    (("major depressive disorder",), '"Depressive Disorder, Major"[Mesh]'),
)

FILLER_PHRASES: tuple[str, ...] = (
    "what are the latest",
    "what is the latest",
    "what are the",
    "what is the",
    "what are",
    "what is",
    "tell me about",
    "information about",
    "information on",
    "latest research on",
    "latest research about",
    "recent research on",
    "recent advances in",
    "recent studies on",
    "studies on",
    "research on",
    "the role of",
    "the effects of",
    "the effect of",
    "effects of",
    "effect of",
    "how does",
    "how do",
    "is there",
)

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "between", "by", "can", "do", "does",
        "for", "from", "has", "have", "how", "in", "into", "is", "it", "its", "latest",
        "new", "of", "on", "or", "recent", "the", "their", "there", "to", "what", "which",
        "with", "why", "about", "any", "current",
    }
)

TERM_DICTIONARY: dict[str, str] = {
    "cancer": '"Neoplasms"[Mesh]',
    "cancers": '"Neoplasms"[Mesh]',
    "tumor": '"Neoplasms"[Mesh]',
    "tumors": '"Neoplasms"[Mesh]',
    "heart": '"Heart"[Mesh]',
    "cardiovascular": '"Cardiovascular Diseases"[Mesh]',
    "stroke": '"Stroke"[Mesh]',
    "obesity": '"Obesity"[Mesh]',
    "exercise": '"Exercise"[Mesh]',
    "diet": '"Diet"[Mesh]',
    "nutrition": '"Nutritional Physiological Phenomena"[Mesh]',
    "sleep": '"Sleep"[Mesh]',
    "depression": '"Depression"[Mesh]',
    "anxiety": '"Anxiety"[Mesh]',
    "vaccine": '"Vaccines"[Mesh]',
    "vaccines": '"Vaccines"[Mesh]',
    "vaccination": '"Vaccination"[Mesh]',
    "antibiotic": '"Anti-Bacterial Agents"[Mesh]',
    "antibiotics": '"Anti-Bacterial Agents"[Mesh]',
    "resistance": '"Drug Resistance"[Mesh]',
    "immunotherapy": '"Immunotherapy"[Mesh]',
    "chemotherapy": '"Drug Therapy"[Mesh]',
    "treatment": '"Therapeutics"[Mesh]',
    "treatments": '"Therapeutics"[Mesh]',
    "therapy": '"Therapeutics"[Mesh]',
    "children": '"Child"[Mesh]',
    "child": '"Child"[Mesh]',
    "elderly": '"Aged"[Mesh]',
    "pregnancy": '"Pregnancy"[Mesh]',
    "microbiome": '"Gastrointestinal Microbiome"[Mesh]',
    "inflammation": '"Inflammation"[Mesh]',
    "genetics": '"Genetics"[Mesh]',
    "crispr": '"CRISPR-Cas Systems"[Mesh]',
    "smoking": '"Smoking"[Mesh]',
    "alcohol": '"Alcohol Drinking"[Mesh]',
    "dementia": '"Dementia"[Mesh]',
    "pain": '"Pain"[Mesh]',
    "mortality": '"Mortality"[Mesh]',
}

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'\-]*")


def _contains_phrase(text: str, phrase: str) -> re.Match[str] | None:
    return re.search(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", text)


def _dedupe(terms: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for term in terms:
        if term not in seen:
            seen.add(term)
            out.append(term)
    return out


def _condition_terms(text: str) -> list[str]:
    remaining = text
    terms: list[str] = []
    for keywords, mesh_term in CONDITION_TERMS:
        for keyword in keywords:
            match = _contains_phrase(remaining, keyword)
            if match:
                terms.append(mesh_term)
                remaining = remaining[: match.start()] + " " + remaining[match.end() :]
                break
    return _dedupe(terms)


def _strip_filler(text: str) -> str:
    for phrase in FILLER_PHRASES:
        text = re.sub(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])", " ", text)
    return text


def build_mesh_query(query: str) -> str:
    trimmed = " ".join(query.split())
    if not trimmed:
        return ""
    lowered = trimmed.lower().rstrip("?.!")

    conditions = _condition_terms(lowered)
    if conditions:
        return " AND ".join(conditions)

    words = [w.strip("'-") for w in _WORD_RE.findall(_strip_filler(lowered))]
    content_words = [w for w in words if w and w not in STOPWORDS]
    terms = _dedupe([TERM_DICTIONARY[w] for w in content_words if w in TERM_DICTIONARY])
    if terms:
        return " AND ".join(terms)
    return trimmed
