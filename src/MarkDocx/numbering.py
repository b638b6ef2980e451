from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SequenceRegistry:
    """Numbering sequences handed out during one conversion.

    Every independent ordered list gets the next id; nested ordered lists
    reuse their parent's id. ``max_sequence_id`` tells the packager how many
    numbering definitions to register.
    """

    max_sequence_id: int = 0

    def start_sequence(self) -> int:
        self.max_sequence_id += 1
        return self.max_sequence_id

    def observe(self, sequence_id: int | None) -> None:
        if sequence_id is not None and sequence_id > self.max_sequence_id:
            self.max_sequence_id = sequence_id

    def assign(self, ordered: bool, inherited: int | None) -> int | None:
        """Sequence id for a list given the id of its nearest ordered ancestor."""
        if not ordered:
            return None
        if inherited is not None:
            self.observe(inherited)
            return inherited
        return self.start_sequence()
