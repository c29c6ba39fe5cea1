"""
Prompt Assembly

Builds the single user-turn prompt sent to the language model. Assembly is
a pure function of its inputs: no timestamps, no randomness, no I/O, so the
same inputs always produce byte-identical output.

Section order
-------------
1. Persona (tutoring role, target language, student background language)
2. Target-language instruction block (known languages only)
3. Explanation-language directive
4. Session continuity note (when a session id is present)
5. Reference material, one "Source N" entry per passage (when any)
6. The verbatim quoted question, response-language directive, formatting
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ..models import DEFAULT_LANGUAGE, ContextPassage

DEFAULT_BACKGROUND_LANGUAGE = "Simple Chinese (简体中文)"

SESSION_SYSTEM_PROMPT = (
    "You are a helpful, accurate, and supportive language tutor for students "
    "from mainland China learning foreign languages. You provide personalized "
    "guidance, clear explanations, and follow up on previous interactions in "
    "the most helpful way."
)

# Appended to the display name of explanation languages.
_LANGUAGE_GLOSSES: Dict[str, str] = {
    "chinese": "简体中文",
}


@dataclass(frozen=True)
class LanguageProfile:
    """Structural elements requested when teaching one target language."""

    name: str
    display_name: str
    elements: Tuple[str, ...]

    def render(self, explanation_language: str) -> str:
        lines = [f"When explaining {self.display_name} concepts, you should provide:"]
        for number, element in enumerate(self.elements, 1):
            lines.append(f"{number}. {element.format(explanation_language=explanation_language)}")
        return "\n".join(lines) + "\n"


LANGUAGE_PROFILES: Dict[str, LanguageProfile] = {
    "english": LanguageProfile(
        name="english",
        display_name="English",
        elements=(
            "Clear explanations in {explanation_language}",
            "Relevant example sentences demonstrating proper usage",
            "Common mistakes made by Chinese speakers learning English and how to avoid them",
            "If pronunciation is discussed, provide pinyin approximations that would help Chinese speakers",
            "Cultural context when relevant to language usage",
        ),
    ),
    "japanese": LanguageProfile(
        name="japanese",
        display_name="Japanese",
        elements=(
            "Clear explanations in {explanation_language}",
            "Example sentences demonstrating proper usage with kanji, hiragana, and katakana as appropriate",
            "Common mistakes made by Chinese speakers learning Japanese and how to avoid them",
            "If pronunciation is discussed, provide Chinese phonetic approximations",
            "Appropriate kanji usage with furigana when helpful",
            "Cultural context when relevant to language usage",
        ),
    ),
}


def get_profile(language: str) -> Optional[LanguageProfile]:
    return LANGUAGE_PROFILES.get(language.strip().lower())


def _with_gloss(language: str) -> str:
    gloss = _LANGUAGE_GLOSSES.get(language.strip().lower())
    return f"{language} ({gloss})" if gloss else language


class PromptAssembler:
    """Deterministic prompt builder; holds only immutable configuration."""

    def __init__(self, background_language: str = DEFAULT_BACKGROUND_LANGUAGE) -> None:
        self.background_language = background_language

    def assemble(
        self,
        query: str,
        target_language: Optional[str] = None,
        explanation_language: Optional[str] = None,
        session_id: Optional[str] = None,
        passages: Sequence[ContextPassage] = (),
    ) -> str:
        target = target_language or DEFAULT_LANGUAGE
        explain = explanation_language or target

        sections = [
            f"You are a helpful, accurate and supportive language tutor for students "
            f"from mainland China learning {target}. \n"
            f"You provide clear explanations, examples, and personalized guidance. "
            f"The student's primary language is {self.background_language}.\n\n"
        ]

        profile = get_profile(target)
        if profile is not None:
            sections.append(profile.render(explain))

        sections.append(
            f"\nThe student has requested explanations in {_with_gloss(explain)}.\n\n"
        )

        if session_id:
            sections.append(
                f"This is part of an ongoing tutoring session ({session_id}). "
                "If this follows previous questions, make sure your response takes "
                "the conversation context into account.\n\n"
            )

        if passages:
            sections.append("Here is some relevant information that might help answer the question:\n\n")
            for number, passage in enumerate(passages, 1):
                sections.append(f"Source {number}: {passage.content}\n\n")
            sections.append("Using the above information as reference where applicable, ")

        sections.append(f'The student\'s question is: "{query}"\n\n')
        sections.append(f"Respond in {_with_gloss(explain)}.\n")
        sections.append(
            "Format your response in a clear, structured way with appropriate headings "
            "and bullet points when needed. If explaining grammar points, include a "
            '"Practice" section with 1-2 simple exercises to help reinforce learning.\n'
        )

        return "".join(sections)
