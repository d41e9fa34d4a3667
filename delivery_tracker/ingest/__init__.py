from delivery_tracker.ingest.models import DeliveryRecord, IngestionError, Region, RegionFilter

__all__ = ["DeliveryRecord", "IngestionError", "Region", "RegionFilter"]
