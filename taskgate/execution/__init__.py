"""Task execution core: stage runner, pipeline, gates and phase committer flows."""
