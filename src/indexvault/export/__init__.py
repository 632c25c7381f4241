"""Export pipeline: index resolution, metadata, document streaming and job orchestration."""
