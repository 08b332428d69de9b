"""
Tech stack detector.

Runs every registered DetectionRule over a file set in a single pass and
folds the results into a TechStackFacts record. Detection is best-effort: a
rule that fails is logged and skipped, and an empty or unrecognised file set
still yields a valid, conservative record.
"""

import logging
from typing import Iterable, Optional

from context_engine.detection.rules import (
    PRECEDENCE_LANGUAGE_DEFAULT,
    DetectionRule,
    DetectionState,
    default_rules,
)
from context_engine.models.parsed import FileEntry, TechStackFacts
from context_engine.utils.hashing import to_json_value

logger = logging.getLogger(__name__)

# Languages whose projects default to cli-tool when nothing else is known
CLI_DEFAULT_LANGUAGES = {"typescript", "javascript", "python", "rust", "go"}


class TechStackDetector:
    """
    Registry of detection rules with a single-pass detect().

    Example:
        >>> detector = TechStackDetector()
        >>> facts = detector.detect([FileEntry("main.py", "import fastapi")])
        >>> facts.project_type
        'api-service'
    """

    def __init__(self, rules: Optional[list[DetectionRule]] = None) -> None:
        self._rules: list[DetectionRule] = (
            list(rules) if rules is not None else default_rules()
        )

    def register(self, rule: DetectionRule) -> None:
        """
        Register an additional rule.

        Rules run in registration order for every file.
        """
        self._rules.append(rule)
        logger.debug(f"Registered detection rule: {rule.name}")

    @property
    def rules(self) -> list[DetectionRule]:
        return list(self._rules)

    def detect(self, files: Iterable[FileEntry]) -> TechStackFacts:
        """
        Derive a facts record from (path, content) pairs.

        Args:
            files: Files of one save request, in input order

        Returns:
            TechStackFacts; never raises for malformed input
        """
        state = DetectionState()

        for entry in files:
            for rule in self._rules:
                try:
                    if rule.matches(entry):
                        rule.apply(entry, state)
                except Exception as e:
                    logger.warning(
                        f"Detection rule {rule.name} failed on {entry.path}: {e}",
                        exc_info=True,
                    )

        if state.project_type is None and state.languages & CLI_DEFAULT_LANGUAGES:
            state.suggest_project_type("cli-tool", PRECEDENCE_LANGUAGE_DEFAULT)

        facts = TechStackFacts(
            languages=set(state.languages),
            tech_stack=to_json_value(state.tech_stack),
            project_type=state.project_type or "other",
            build_system=state.build_system,
            test_framework=state.test_framework,
        )
        logger.debug(
            f"Detected tech stack: languages={sorted(facts.languages)}, "
            f"type={facts.project_type}, build={facts.build_system}, "
            f"tests={facts.test_framework}"
        )
        return facts


_default_detector = TechStackDetector()


def detect_tech_stack(files: Iterable[FileEntry]) -> TechStackFacts:
    """Detect with the default rule set."""
    return _default_detector.detect(files)
