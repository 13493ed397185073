"""Grade calculation services: weekly record entry, grading and progress reports."""
