"""
Firestore-backed cluster store.

Source collections (read-only here):
- users: one document per user profile (doc id = user id)
- subjects: subject usage counts ({name, count})
- learning_objects: content items ({item_id, popularity, owner_id, title})

Result collections (rewritten on every clustering run):
- clusters: one document per canopy (doc id = canopy id)
- cluster_users: one document per (canopy, member)
- cluster_learning_objects: one document per (canopy, position)
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from .errors import MalformedProfile, NotFound, StorageFailure
from .models import Canopy, ContentItem, UserProfile
from .storage import ClusterStore

logger = logging.getLogger(__name__)

# Firestore batch limit
BATCH_SIZE = 500

RESULT_COLLECTIONS = ("clusters", "cluster_users", "cluster_learning_objects")


@contextmanager
def _storage_errors(operation: str, **context: Any) -> Iterator[None]:
    """Re-raise Firestore API errors as StorageFailure."""
    try:
        yield
    except GoogleAPICallError as e:
        logger.error(f"Firestore {operation} failed: {e}")
        raise StorageFailure(f"Firestore {operation} failed: {e}", context) from e


class FirestoreClusterStore(ClusterStore):
    """
    Cluster store on top of Google Cloud Firestore.

    Args:
        project_id: GCP project ID (default: client default project)
        client: Existing Firestore client (overrides ``project_id``)
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        client: Optional[firestore.Client] = None,
    ):
        if client is None:
            logger.info(f"Initializing Firestore client for project: {project_id}")
            client = firestore.Client(project=project_id)
        self.db = client

    # ==================== SOURCE DATA ====================

    def fetch_all_profiles(self) -> List[UserProfile]:
        with _storage_errors("fetch_all_profiles"):
            profiles = [
                self._profile_from_doc(doc)
                for doc in self.db.collection("users").stream()
            ]
        logger.info(f"Loaded {len(profiles)} user profiles")
        return profiles

    def fetch_top_feature_dimensions(self, k: int) -> List[str]:
        with _storage_errors("fetch_top_feature_dimensions", k=k):
            query = (
                self.db.collection("subjects")
                .order_by("count", direction=firestore.Query.DESCENDING)
                .limit(k)
            )
            subjects = []
            for doc in query.stream():
                data = doc.to_dict()
                subjects.append(data.get("name") or doc.id)
        logger.info(f"Top {k} subjects: {subjects}")
        return subjects

    def fetch_profile(self, user_id: int) -> UserProfile:
        with _storage_errors("fetch_profile", user_id=user_id):
            doc = self.db.collection("users").document(str(user_id)).get()
        if not doc.exists:
            raise NotFound("User profile not found", {"user_id": user_id})
        return self._profile_from_doc(doc)

    def fetch_content_items_for_user(self, user_id: int) -> List[ContentItem]:
        with _storage_errors("fetch_content_items_for_user", user_id=user_id):
            docs = (
                self.db.collection("learning_objects")
                .where("owner_id", "==", user_id)
                .stream()
            )
            return [self._item_from_doc(doc) for doc in docs]

    # ==================== CLUSTERS ====================

    def reset_clusters(self) -> None:
        for collection_name in RESULT_COLLECTIONS:
            with _storage_errors("reset_clusters", collection=collection_name):
                deleted = self._delete_collection(collection_name)
            logger.info(f"Cleared {deleted} documents from {collection_name}")

    def persist_canopy(self, canopy: Canopy) -> None:
        with _storage_errors("persist_canopy", canopy_id=canopy.canopy_id):
            batch = self.db.batch()
            write_count = 0

            cluster_ref = self.db.collection("clusters").document(str(canopy.canopy_id))
            batch.set(cluster_ref, canopy.to_dict())
            write_count += 1

            for member_index, user_id in enumerate(canopy.member_ids):
                member_ref = self.db.collection("cluster_users").document(
                    f"{canopy.canopy_id}_{user_id}"
                )
                batch.set(
                    member_ref,
                    {
                        "cluster_id": canopy.canopy_id,
                        "user_id": user_id,
                        "member_index": member_index,
                    },
                )
                write_count += 1

                if write_count == BATCH_SIZE:
                    batch.commit()
                    batch = self.db.batch()
                    write_count = 0

            if write_count > 0:
                batch.commit()

        logger.debug(f"Persisted cluster {canopy.canopy_id} ({len(canopy)} members)")

    def fetch_members_of_canopy(self, canopy_id: int) -> List[UserProfile]:
        with _storage_errors("fetch_members_of_canopy", canopy_id=canopy_id):
            docs = (
                self.db.collection("cluster_users")
                .where("cluster_id", "==", canopy_id)
                .stream()
            )
            # Document ids sort as strings ("1_10" < "1_2"), so restore membership order
            rows = sorted(
                (doc.to_dict() for doc in docs),
                key=lambda row: row.get("member_index", 0),
            )
            user_ids = [row["user_id"] for row in rows]

            members = []
            for user_id in user_ids:
                doc = self.db.collection("users").document(str(user_id)).get()
                if not doc.exists:
                    logger.warning(
                        f"Member {user_id} of cluster {canopy_id} has no profile, skipping"
                    )
                    continue
                members.append(self._profile_from_doc(doc))
        return members

    def persist_ranked_assignment(
        self, item: ContentItem, position: int, canopy_id: int
    ) -> None:
        data = item.to_dict()
        data.update({"cluster_id": canopy_id, "position": position})
        with _storage_errors(
            "persist_ranked_assignment", canopy_id=canopy_id, item_id=item.item_id
        ):
            self.db.collection("cluster_learning_objects").document(
                f"{canopy_id}_{position}"
            ).set(data)

    def fetch_all_canopies(self) -> List[Canopy]:
        with _storage_errors("fetch_all_canopies"):
            canopies = [
                Canopy.from_dict(doc.to_dict())
                for doc in self.db.collection("clusters").stream()
            ]
        return sorted(canopies, key=lambda c: c.canopy_id)

    def fetch_existing_cluster_id_for_user(self, user_id: int) -> Optional[int]:
        with _storage_errors("fetch_existing_cluster_id_for_user", user_id=user_id):
            docs = (
                self.db.collection("cluster_users")
                .where("user_id", "==", user_id)
                .stream()
            )
            cluster_ids = [int(doc.to_dict()["cluster_id"]) for doc in docs]
        return min(cluster_ids) if cluster_ids else None

    # ==================== HELPERS ====================

    def _delete_collection(self, collection_name: str) -> int:
        """Delete every document of a collection in batches."""
        batch = self.db.batch()
        write_count = 0
        deleted = 0

        for doc in self.db.collection(collection_name).stream():
            batch.delete(doc.reference)
            write_count += 1
            deleted += 1

            if write_count == BATCH_SIZE:
                batch.commit()
                batch = self.db.batch()
                write_count = 0

        if write_count > 0:
            batch.commit()

        return deleted

    @staticmethod
    def _profile_from_doc(doc) -> UserProfile:
        data: Dict[str, Any] = doc.to_dict()
        data.setdefault("user_id", doc.id)
        try:
            return UserProfile.from_dict(data)
        except (TypeError, ValueError) as e:
            raise MalformedProfile(
                f"Invalid user profile document: {e}", {"doc_id": doc.id}
            ) from e

    @staticmethod
    def _item_from_doc(doc) -> ContentItem:
        data: Dict[str, Any] = doc.to_dict()
        data.setdefault("item_id", doc.id)
        return ContentItem.from_dict(data)
