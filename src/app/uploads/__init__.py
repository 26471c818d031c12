from app.uploads.staging import StagedUpload, UploadStaging, get_upload_staging

__all__ = ["StagedUpload", "UploadStaging", "get_upload_staging"]
