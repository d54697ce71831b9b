from typing import Dict, List, Optional

from ..models.captured_artifact import CapturedArtifact


class ArtifactRepository:
    """
    In-memory gallery of CapturedArtifact objects for one session.
    Newest capture first, like a camera roll.
    """

    def __init__(self):
        self._artifacts: List[CapturedArtifact] = []
        self._by_id: Dict[str, CapturedArtifact] = {}

    def add(self, artifact: CapturedArtifact) -> None:
        self._artifacts.insert(0, artifact)
        self._by_id[artifact.id] = artifact

    def get(self, artifact_id: str) -> Optional[CapturedArtifact]:
        return self._by_id.get(artifact_id)

    def list_all(self) -> List[CapturedArtifact]:
        return list(self._artifacts)

    def remove(self, artifact_id: str) -> bool:
        """
        Discard an artifact.

        Returns:
            bool: True if something was removed, False if the id was unknown.
        """
        artifact = self._by_id.pop(artifact_id, None)
        if artifact is None:
            return False
        self._artifacts.remove(artifact)
        return True

    def clear(self) -> None:
        self._artifacts.clear()
        self._by_id.clear()

    def __len__(self) -> int:
        return len(self._artifacts)
