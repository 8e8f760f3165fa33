"""
Directive parsing - the single trust boundary for director free text.

Grammar understood in director output:

- ``【秘密指示：<name>|<content>】`` (ASCII ``:`` and fullwidth ``｜`` accepted),
  any number of times
- ``【轮到：<name>】``, only the first one is honoured (one turn per round)
- the literal ``游戏结束`` anywhere ends the game

Everything downstream works on the typed directives, never on raw text.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Union

logger = logging.getLogger(__name__)

END_MARKER = "游戏结束"

SECRET_PATTERN = re.compile(r"【\s*秘密指示\s*[：:]\s*([^|｜】]+?)\s*[|｜]\s*(.+?)\s*】", re.DOTALL)
TURN_PATTERN = re.compile(r"【\s*轮到\s*[：:]\s*([^】]+?)\s*】")


@dataclass(frozen=True)
class AdvanceTurn:
    agent_name: str


@dataclass(frozen=True)
class SendSecret:
    agent_name: str
    content: str


@dataclass(frozen=True)
class EndGame:
    reason: str


@dataclass(frozen=True)
class Malformed:
    raw: str


Directive = Union[AdvanceTurn, SendSecret, EndGame, Malformed]


class DirectiveParser:
    """Extracts directives from one director response"""

    def parse(self, text: str) -> List[Directive]:
        """
        Parse a director response.

        Returns:
            ``[EndGame]`` when the end marker is present, otherwise every
            SendSecret followed by at most one AdvanceTurn, or ``[Malformed]``
            when nothing was recognised. Secrets always come before the turn
            regardless of where they appear in the text.
        """
        text = text or ""

        if END_MARKER in text:
            return [EndGame(reason=text.strip())]

        directives: List[Directive] = [
            SendSecret(agent_name=name, content=content)
            for name, content in SECRET_PATTERN.findall(text)
        ]

        turns = TURN_PATTERN.findall(text)
        if len(turns) > 1:
            logger.info(f"Director issued {len(turns)} turn directives, honouring '{turns[0]}' only")
        if turns:
            directives.append(AdvanceTurn(agent_name=turns[0]))

        if not directives:
            logger.warning("No directive found in director output")
            return [Malformed(raw=text)]

        return directives
