"""UploadAgent - watch folders and upload new files to a document store."""

__version__ = "0.1.0"
