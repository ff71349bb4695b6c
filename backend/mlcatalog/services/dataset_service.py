# backend/mlcatalog/services/dataset_service.py
import logging
from typing import List

from sqlalchemy import func

from mlcatalog.models.base import now_millis
from mlcatalog.models.dataset import Dataset, DatasetVersion
from mlcatalog.schemas.caller import Caller
from mlcatalog.schemas.dataset import DatasetResponse, DatasetVersionCreate
from mlcatalog.services.deep_copy import ChildSpec
from mlcatalog.services.resource_service import ResourceAccessor

logger = logging.getLogger(__name__)


class DatasetAccessor(ResourceAccessor):
    model = Dataset
    resource_type = "dataset"
    response_schema = DatasetResponse
    children = [
        ChildSpec("dataset_version", DatasetVersion, {"dataset_id": "dataset"}),
    ]

    def _extra_fields(self, payload):
        return {"dataset_type": payload.dataset_type}

    def add_version(self, dataset_id: str, caller: Caller, payload: DatasetVersionCreate) -> DatasetVersion:
        """Versions number from 1 and never reuse a number, even after a delete."""
        dataset = self.mutations.load_live(dataset_id)
        latest = self.db.query(func.max(DatasetVersion.version)).filter(
            DatasetVersion.dataset_id == dataset_id,
        ).scalar()

        now = now_millis()
        version = DatasetVersion(
            dataset_id=dataset_id,
            owner=caller.id,
            version=(latest or 0) + 1,
            description=payload.description or "",
            date_created=now,
            date_updated=now,
        )
        self.db.add(version)
        self.mutations.touch(dataset)
        self.db.commit()
        self.db.refresh(version)
        logger.info(f"Created version {version.version} of dataset {dataset_id}")
        return version

    def list_versions(self, dataset_id: str) -> List[DatasetVersion]:
        self._live(dataset_id)
        return self.db.query(DatasetVersion).filter(
            DatasetVersion.dataset_id == dataset_id,
            DatasetVersion.deleted.is_(False),
        ).order_by(DatasetVersion.version).all()
