#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bibtitle.py — title casing for bibliography titles and venue names.

- titlecase(): small-word aware title casing that keeps URLs, paths,
  escaped LaTeX commands and intentional internal capitals untouched
- fix_acronyms(): canonical casing for known acronyms / domain terms
- protect_capitalized(): brace runs of Capitalized words so sentence-case
  .bst styles cannot lowercase them
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

# -----------------------------
# Static tables
# -----------------------------
# Lowercased in titles unless they open/close the title or a subphrase.
SMALL_WORDS = frozenset({
    "a", "an", "and", "as", "at", "but", "by", "en", "for", "if", "in",
    "of", "on", "or", "the", "to", "v", "via", "vs",
})

# Canonical display casing, keyed by the lowercased form. Keys are single
# words (letters/digits only) so whole-word replacement never overlaps.
_ACRONYM_TERMS = [
    # venues, publishers, societies
    "AAAI", "AACL", "ACCV", "ACL", "ACM", "AISTATS", "arXiv", "BMVC", "CIKM",
    "COLING", "COLT", "CoRL", "CVF", "CVPR", "EACL", "ECCV", "ECML", "EMNLP",
    "FSE", "HLT", "ICASSP", "ICCV", "ICDE", "ICDM", "ICLR", "ICML", "ICRA",
    "ICSE", "IEEE", "IJCAI", "IJCNLP", "IJCNN", "IJCV", "IROS", "ISSTA", "JMLR",
    "KDD", "MICCAI", "NAACL", "NeurIPS", "NIPS", "NSDI", "OpenReview", "OSDI",
    "PKDD", "PMLR", "RecSys", "SIAM", "SIGGRAPH", "SIGIR", "SIGKDD", "SIGMOD",
    "SOSP", "TACL", "TPAMI", "UAI", "UIST", "USENIX", "VLDB", "WACV", "WSDM",
    # methods and models
    "AI", "ASR", "BERT", "ChatGPT", "CLIP", "CNN", "CNNs", "CoT", "DPO", "GAN",
    "GANs", "GNN", "GNNs", "GPT", "HMM", "LLM", "LLMs", "LoRA", "LSTM", "MCMC",
    "ML", "MLP", "MLPs", "MoE", "NeRF", "NER", "NLP", "NLU", "OCR", "PCA",
    "PPO", "QA", "RAG", "ResNet", "RL", "RLHF", "RNN", "RNNs", "RoBERTa", "SGD",
    "SLAM", "SMT", "SVM", "SVMs", "T5", "TTS", "VAE", "VAEs", "ViT", "ViTs",
    "XLNet",
    # tools, data, hardware
    "API", "APIs", "BibTeX", "CIFAR", "COCO", "COVID", "CPU", "CPUs", "DeepMind",
    "DNA", "EEG", "fMRI", "GitHub", "GPU", "GPUs", "HCI", "HTTP", "ImageNet",
    "iOS", "IoT", "JAX", "JSON", "LaTeX", "LiDAR", "MNIST", "MRI", "NumPy",
    "OpenAI", "PyTorch", "RGB", "RNA", "ROS", "SQL", "TensorFlow", "TPU",
    "TPUs", "UAV", "UAVs", "URL", "VR", "XML", "YouTube",
    "2D", "3D",
]
ACRONYMS: Mapping[str, str] = MappingProxyType({t.lower(): t for t in _ACRONYM_TERMS})

# -----------------------------
# Word patterns
# -----------------------------
_ALPHA = r"[^\W\d_]"
_APOS = r"(?:['’]" + _ALPHA + r"*)?"
_SMALL_ALT = "|".join(sorted(SMALL_WORDS, key=lambda w: (-len(w), w)))

_PATH_RE = re.compile(_ALPHA + r"+(?:[-_/\\]|" + _ALPHA + r")+_*\b")
_URL_RE = re.compile(
    r"(?:[-_]|" + _ALPHA + r")+[@.:](?:[-_@.:/]|" + _ALPHA + r")+" + _APOS + r"_*\b"
)
_SMALL_RE = re.compile(r"(?:" + _SMALL_ALT + r")" + _APOS + r"_*\b", re.IGNORECASE)
_WORD_RE = re.compile(_ALPHA + r"(?:" + _ALPHA + r"|['’()\[\]{}])*" + _APOS + r"_*\b")
_SMALL_WORD_RE = re.compile(r"\b(?:" + _SMALL_ALT + r")\b", re.IGNORECASE)

_OPENING_RE = re.compile(r"(?:\A[^\w\s]*|[:.;?!] +| ['\"“‘(\[] *)\Z")
_CLOSING_RE = re.compile(r"[^\w\s]*\Z|['\"’”)\]] ")
_HYPHEN_TAIL_RE = re.compile(r"-" + _ALPHA + r"+")
_HYPHEN_HEAD_RE = re.compile(_ALPHA + r"+-\Z")

# accent macros (\"o, \'e) stay inside the word they decorate
_ACCENT_CHARS = "\"'^`~=."
_ACCENT = r"\\[" + re.escape(_ACCENT_CHARS) + r"]"
_CAP_PART = r"(?:[\w'’]|" + _ACCENT + r")"
_CAP_WORD_RE = re.compile(_ALPHA + _CAP_PART + r"*(?:-" + _CAP_PART + r"+)*")


def _is_word_char(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def _follows_accent(text: str, i: int) -> bool:
    return i >= 2 and text[i - 2] == "\\" and text[i - 1] in _ACCENT_CHARS


def _is_escaped(text: str, i: int) -> bool:
    """True if text[i] follows a backslash or an accent macro such as \\"."""
    return text[i - 1:i] == "\\" or _follows_accent(text, i)


def _word_may_start(text: str, i: int) -> bool:
    if not _is_word_char(text[i]):
        return False
    if i == 0:
        return True
    # the "o" of Schr\"odinger belongs to the macro
    if _follows_accent(text, i):
        return False
    prev = text[i - 1]
    if _is_word_char(prev):
        return False
    # possessive tail such as the "s" in "3D's"
    if prev in "'’" and i >= 2 and _is_word_char(text[i - 2]):
        return False
    return True


def _is_guarded_small(text: str, start: int, end: int) -> bool:
    """Small-word lookalikes that must not be lowercased (Q&A, AT&T, \\in)."""
    word = text[start:end].lower()
    if _is_escaped(text, start):
        return True
    if word == "a" and text[max(0, start - 2):start].lower() == "q&":
        return True
    if word == "at" and text[end:end + 2].lower() == "&t":
        return True
    return False


def _case_word(text: str, start: int) -> Optional[Tuple[int, str]]:
    """Classify the word at *start*; return (end, rendered) or None."""
    if text[max(0, start - 2):start] in (" /", " \\"):
        m = _PATH_RE.match(text, start)
        if m:
            return m.end(), m.group()

    m = _URL_RE.match(text, start)
    if m:
        return m.end(), m.group()

    m = _SMALL_RE.match(text, start)
    if m and not _is_guarded_small(text, start, m.end()):
        return m.end(), m.group().lower()

    m = _WORD_RE.match(text, start)
    if m:
        word = m.group()
        if not _is_escaped(text, start) and word[1:] == word[1:].lower():
            word = word[:1].upper() + word[1:]
        return m.end(), word
    return None


def _recase_small_words(text: str, wants_capital) -> str:
    """
    Capitalize the small words for which ``wants_capital(before, after)`` is
    true; *before* and *after* are the text on either side of the word. Each
    rule takes both even when it only looks at one side.
    """
    def repl(m: re.Match) -> str:
        start, end = m.start(), m.end()
        if _is_guarded_small(text, start, end):
            return m.group()
        if not wants_capital(text[:start], text[end:]):
            return m.group()
        return _capitalize(m.group())

    return _SMALL_WORD_RE.sub(repl, text)


def _opens_phrase(before: str, after: str) -> bool:
    return bool(_OPENING_RE.search(before))


def _closes_phrase(before: str, after: str) -> bool:
    return bool(_CLOSING_RE.match(after))


def _leads_compound(before: str, after: str) -> bool:
    return not before.endswith("-") and bool(_HYPHEN_TAIL_RE.match(after))


def _ends_compound(before: str, after: str) -> bool:
    if after.startswith("-"):
        return False
    m = _HYPHEN_HEAD_RE.search(before)
    if not m:
        return False
    lead = before[m.start() - 1:m.start()]
    return not _is_word_char(lead) and lead != "…"


def titlecase(text: str) -> str:
    """
    Title-case *text*.

    Shouted input (no lowercase letter at all) is lowercased first; otherwise
    existing capitals are kept. Small words are lowercased except at the start
    or end of the title or of a subphrase, and inside hyphenated compounds
    such as "In-Flight" or "Stand-In".
    """
    text = (text or "").strip()
    if not any(ch.islower() for ch in text):
        text = text.lower()

    pieces: List[str] = []
    pos = 0
    i = 0
    n = len(text)
    while i < n:
        if not _word_may_start(text, i):
            i += 1
            continue
        start = i
        while start < n and text[start] == "_":
            start += 1
        cased = _case_word(text, start) if start < n else None
        if cased is None:
            # digits or unsupported characters: skip the whole word run
            while i < n and _is_word_char(text[i]):
                i += 1
            continue
        end, word = cased
        pieces.append(text[pos:start])
        pieces.append(word)
        pos = i = end
    pieces.append(text[pos:])
    text = "".join(pieces)

    for rule in (_opens_phrase, _closes_phrase, _leads_compound, _ends_compound):
        text = _recase_small_words(text, rule)
    return text


# -----------------------------
# Acronyms
# -----------------------------
def _compile_acronyms(acronyms: Mapping[str, str]) -> re.Pattern:
    keys = sorted(acronyms, key=lambda k: (-len(k), k))
    return re.compile(r"\b(?:" + "|".join(map(re.escape, keys)) + r")\b", re.IGNORECASE)


_ACRONYM_RE = _compile_acronyms(ACRONYMS)


def fix_acronyms(text: str, acronyms: Optional[Mapping[str, str]] = None) -> str:
    """Replace every whole-word occurrence of a table key with its canonical casing."""
    if acronyms is None or acronyms is ACRONYMS:
        acronyms, pattern = ACRONYMS, _ACRONYM_RE
    elif not acronyms:
        return text
    else:
        pattern = _compile_acronyms(acronyms)
    return pattern.sub(lambda m: acronyms[m.group().lower()], text)


# -----------------------------
# Brace protection
# -----------------------------
def protect_capitalized(text: str) -> str:
    """
    Wrap every run of space-separated Capitalized words in one brace group:
    "A Study of Machine Learning" -> "{A Study} of {Machine Learning}".
    Hyphenated and digit-suffixed words (GPT-4) count as one word; a lone
    "i" is protected too; escaped commands (\\LaTeX) are left alone and
    accent macros (Schr\\"odinger) stay inside their word.
    """
    runs: List[List[int]] = []
    for m in _CAP_WORD_RE.finditer(text):
        word = m.group()
        lead = text[m.start() - 1:m.start()]
        if _is_escaped(text, m.start()) or _is_word_char(lead):
            continue
        if not (word[0].isupper() or word == "i"):
            continue
        if runs and text[runs[-1][1]:m.start()].isspace():
            runs[-1][1] = m.end()
        else:
            runs.append([m.start(), m.end()])

    pieces: List[str] = []
    pos = 0
    for start, end in runs:
        pieces.append(text[pos:start])
        pieces.append("{" + text[start:end] + "}")
        pos = end
    pieces.append(text[pos:])
    return "".join(pieces)
