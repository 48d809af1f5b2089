"""
Transcript parsing for interview uploads.
Handles Google Meet exports (speaker labels run inline), WebVTT, SRT and plain text, and
works out which speaker is the interviewer and which is the creator.
"""
import html
import re
from pathlib import Path

from config import INTERVIEWER_NAME

SUPPORTED_EXTENSIONS = [".txt", ".vtt", ".srt"]

# "Name:" / "First Last:" with up to four capitalized words
_LABEL = r"[A-Z][a-zA-Z]*(?: [A-Z][a-zA-Z]*){0,3}"
SPEAKER_LABEL_RE = re.compile(rf"({_LABEL}):")
_INLINE_LABEL_RE = re.compile(rf"[.!?,]\s*{_LABEL}:")
_AFTER_PUNCT_RE = re.compile(rf"([.!?])\s*({_LABEL}:)")
_AFTER_WORD_RE = re.compile(rf"([a-z])({_LABEL}:)")
_TIMESTAMP_RE = re.compile(r"^\d{2}:\d{2}")
_CUE_ID_RE = re.compile(r"^[a-zA-Z0-9-]+$")
_TAG_RE = re.compile(r"<[^>]+>")
_SRT_STYLE_RE = re.compile(r"\{\\[^}]+\}")
_WS_RE = re.compile(r"\s+")


def extract_speakers(raw: str, interviewer_name: str | None = None) -> dict:
    """
    Detect speaker labels and split them into interviewer and creator.

    Returns:
        {"speakers", "interviewer", "model", "has_multiple_models", "error"}. With more
        than one non-interviewer speaker, model is None and the caller must choose.
    """
    interviewer_name = interviewer_name or INTERVIEWER_NAME
    speakers: list[str] = []
    for match in SPEAKER_LABEL_RE.finditer(raw or ""):
        name = match.group(1).strip()
        if len(name) >= 2 and name not in speakers:
            speakers.append(name)

    has_interviewer = any(s.lower() == interviewer_name.lower() for s in speakers)
    others = [s for s in speakers if s.lower() != interviewer_name.lower()]
    info = {
        "speakers": speakers,
        "interviewer": interviewer_name if has_interviewer else None,
        "model": None,
        "has_multiple_models": False,
        "error": None,
    }
    if not speakers:
        info["error"] = "No speakers detected in transcript"
    elif not others:
        info["error"] = "No model detected in transcript - only interviewer found"
    elif len(others) == 1:
        info["model"] = others[0]
    else:
        info["has_multiple_models"] = True
    return info


def clean_speaker_name(name: str) -> str:
    """Collapse whitespace and title-case each word."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in name.split())


def is_google_meet_format(content: str) -> bool:
    """True for Meet-style exports: several speaker labels, at least one running inline after punctuation."""
    if len(SPEAKER_LABEL_RE.findall(content or "")) < 2:
        return False
    return _INLINE_LABEL_RE.search(content) is not None


def parse_google_meet_transcript(raw: str) -> str:
    """Put every speaker turn on its own paragraph."""
    content = raw.replace("\r\n", "\n").replace("\r", "\n")
    content = _AFTER_PUNCT_RE.sub(r"\1\n\n\2", content)
    content = _AFTER_WORD_RE.sub(r"\1\n\n\2", content)
    content = re.sub(r"\n{3,}", "\n\n", content)
    content = re.sub(r" {2,}", " ", content)
    content = "\n".join(line.strip() for line in content.split("\n"))
    return content.strip()


def _finish(lines: list[str]) -> str:
    joined = _WS_RE.sub(" ", " ".join(lines)).strip()
    if is_google_meet_format(joined):
        return parse_google_meet_transcript(joined)
    return joined


def parse_vtt(content: str) -> str:
    """Strip the WEBVTT header, cue ids, timestamps and markup."""
    lines = []
    in_cue = False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("WEBVTT") or stripped.startswith("NOTE"):
            continue
        if not stripped:
            in_cue = False
            continue
        if "-->" in stripped:
            in_cue = True
            continue
        if not in_cue and _CUE_ID_RE.match(stripped):
            continue
        if in_cue or not _TIMESTAMP_RE.match(stripped):
            text = html.unescape(_TAG_RE.sub("", stripped)).replace("\xa0", " ").strip()
            if text:
                lines.append(text)
    return _finish(lines)


def parse_srt(content: str) -> str:
    """Strip sequence numbers, timestamps, HTML tags and ASS style overrides."""
    lines = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.isdigit() or "-->" in stripped:
            continue
        text = _TAG_RE.sub("", _SRT_STYLE_RE.sub("", stripped)).strip()
        if text:
            lines.append(text)
    return _finish(lines)


def parse_txt(content: str) -> str:
    text = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    if is_google_meet_format(text):
        return parse_google_meet_transcript(text)
    return text


def is_supported_transcript_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in SUPPORTED_EXTENSIONS


def parse_transcript(content: str, filename: str | None = None, interviewer_name: str | None = None) -> dict:
    """
    Format a transcript by file extension (.vtt, .srt, anything else as text) and detect speakers.

    Returns:
        {"formatted", "model_name", "speakers", "speaker_info"}
    """
    ext = Path(filename).suffix.lower() if filename else ""
    if ext == ".vtt":
        formatted = parse_vtt(content)
    elif ext == ".srt":
        formatted = parse_srt(content)
    else:
        formatted = parse_txt(content)

    info = extract_speakers(content, interviewer_name)
    return {
        "formatted": formatted,
        "model_name": info["model"],
        "speakers": info["speakers"],
        "speaker_info": info,
    }
