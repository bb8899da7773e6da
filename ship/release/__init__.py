"""Release bounded context.

- branches / resolver / commits: decide whether and what to release
- dispatcher / backends: fan out platform builds
- publisher / gh / changelog: create the tag, release and changelog entry
- orchestrator: sequence the stages as a state machine
"""

from __future__ import annotations
