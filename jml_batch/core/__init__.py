"""Core Business Logic Module

This module provides the lifecycle batch logic, independent of the CLI.

Module Structure:
    - directory/      : Directory (Graph) client library and in-memory fake
    - models.py       : Entities and validated command types
    - validators.py   : Row Validator (CSV row -> command or rejection)
    - guards.py       : Guard Policy (existing-user, privileged-account, group options)
    - processor.py    : Lifecycle Processor (onboarding and offboarding batches)
    - report.py       : Report Sink (outcomes, CSV report, console summary)
    - csv_input.py    : CSV loading with header checks
    - preconditions.py: Run-level checks and their exceptions

Usage Pattern:
    Import explicitly when needed:
        from jml_batch.core.processor import OnboardingOptions, run_onboarding
        from jml_batch.core.directory import InMemoryDirectory
"""
