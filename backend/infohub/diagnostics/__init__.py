"""
HTTP checks run against a live server: health check, API suite and benchmark.

Each module is also a console script (infohub-health, infohub-api-suite,
infohub-bench) and returns a process exit code from main().
"""
