"""
Core Modules
=============
Contains the detection engine and its collaborators:
- detector.py       : Tool-calling conversation engine (PhishingDetector)
- tools.py          : Tool registry, dispatcher and the checkUrl tool
- schema_registry.py: JSON Schema / response-format / tool descriptors
- url_scanner.py    : URL scanner backends (stub, safe_browsing, fetch)
- report.py         : Assembles the final DetectionReport
- run.py            : Per-run state (history, URL map, RunState)
- errors.py         : DetectionError hierarchy
- factory.py        : Builds a detector from configuration
"""
