"""
Ingestion layer — inspection findings and reference data.

Submodules:
  findings_file     — CSV / JSON parser for inspection findings
  reference_loader  — JSON seed loader for catalog items, upgrade types,
                      assumptions and incentive rules
"""
