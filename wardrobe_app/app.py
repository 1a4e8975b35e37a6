"""Wardrobe app bootstrap."""

import logging

from wardrobe_app.config import WardrobeConfig
from wardrobe_app.logging_config import configure_logging, get_logger, log_event
from memory.previews import PreviewRegistry
from tools.generation_provider import GeminiOutfitGenerator, MockOutfitGenerator, OutfitGenerator
from tools.profile_store import ProfileStore, SQLiteProfileStore
from tools.storage_provider import InMemoryStorageProvider, S3StorageProvider, StorageProvider
from tools.vision_provider import (
    ClassificationProvider,
    FaceVerifier,
    GeminiClassificationProvider,
    GeminiFaceVerifier,
    MockClassificationProvider,
    MockFaceVerifier,
)
from workflows.dashboard import DashboardSession
from workflows.profile_setup import ProfileSetupWizard


LOGGER = get_logger(__name__)


class WardrobeApp:
    """Wires together the collaborators and builds per-user sessions."""

    def __init__(
        self,
        config: WardrobeConfig | None = None,
        *,
        classifier: ClassificationProvider | None = None,
        face_verifier: FaceVerifier | None = None,
        storage: StorageProvider | None = None,
        store: ProfileStore | None = None,
        generator: OutfitGenerator | None = None,
    ) -> None:
        self.config = config or WardrobeConfig.from_env()
        configure_logging()

        self.classifier = classifier or self._build_classifier()
        self.face_verifier = face_verifier or self._build_face_verifier()
        self.storage = storage or self._build_storage()
        self.store = store or SQLiteProfileStore(self.config.database_path)
        self.generator = generator or self._build_generator()

        log_event(
            LOGGER,
            logging.INFO,
            "app_initialised",
            environment=self.config.environment or "local",
            storage_backend=type(self.storage).__name__,
            vision=type(self.classifier).__name__,
        )

    def _build_classifier(self) -> ClassificationProvider:
        if not self.config.api_key:
            return MockClassificationProvider()
        return GeminiClassificationProvider(self.config.api_key, self.config.classification_model)

    def _build_face_verifier(self) -> FaceVerifier:
        if not self.config.api_key:
            return MockFaceVerifier()
        return GeminiFaceVerifier(self.config.api_key, self.config.classification_model)

    def _build_generator(self) -> OutfitGenerator:
        if not self.config.api_key:
            return MockOutfitGenerator()
        return GeminiOutfitGenerator(self.config.api_key, self.config.generation_model)

    def _build_storage(self) -> StorageProvider:
        if self.config.storage_backend == "s3":
            if not self.config.r2_bucket_name:
                raise ValueError("R2_BUCKET_NAME is required for the s3 storage backend")
            return S3StorageProvider(
                bucket=self.config.r2_bucket_name,
                endpoint_url=self.config.r2_endpoint_url,
                access_key_id=self.config.r2_access_key_id,
                secret_access_key=self.config.r2_secret_access_key,
                public_url=self.config.r2_public_url,
                max_bytes=self.config.max_upload_bytes,
            )
        return InMemoryStorageProvider(max_bytes=self.config.max_upload_bytes)

    async def has_profile(self, user_id: str) -> bool:
        """Decide whether the user lands on the dashboard or in the wizard."""

        return await self.store.has_profile(user_id)

    def start_wizard(self, user_id: str, on_complete=None) -> ProfileSetupWizard:
        return ProfileSetupWizard(
            user_id,
            classifier=self.classifier,
            storage=self.storage,
            store=self.store,
            previews=PreviewRegistry(),
            on_complete=on_complete,
            max_upload_bytes=self.config.max_upload_bytes,
        )

    def open_dashboard(self, user_id: str) -> DashboardSession:
        return DashboardSession(
            user_id,
            classifier=self.classifier,
            face_verifier=self.face_verifier,
            storage=self.storage,
            store=self.store,
            generator=self.generator,
            previews=PreviewRegistry(),
            max_upload_bytes=self.config.max_upload_bytes,
        )


__all__ = ["WardrobeApp"]
