from __future__ import annotations

from dataclasses import dataclass

from wifo_import.config import ImportSettings, load_settings
from wifo_import.integrations.local_files import JsonBatchRepository, JsonEmployeeDirectory, JsonRevenueLedger
from wifo_import.integrations.statement_parser import WifoStatementParser
from wifo_import.services.import_service import ImportOrchestrator


@dataclass
class AppContainer:
    """Runtime dependency container for API/CLI wiring."""

    settings: ImportSettings
    parser: WifoStatementParser
    repo: JsonBatchRepository
    employees: JsonEmployeeDirectory
    ledger: JsonRevenueLedger
    orchestrator: ImportOrchestrator


def build_container(settings: ImportSettings | None = None) -> AppContainer:
    """Create the default file-backed runtime container."""

    settings = settings or load_settings()
    parser = WifoStatementParser()
    repo = JsonBatchRepository(settings.batch_dir)
    employees = JsonEmployeeDirectory(settings.employees_path)
    ledger = JsonRevenueLedger(settings.ledger_path)
    orchestrator = ImportOrchestrator(
        file_parser=parser,
        employee_directory=employees,
        revenue_sink=ledger,
        batch_repository=repo,
        settings=settings,
    )
    return AppContainer(
        settings=settings,
        parser=parser,
        repo=repo,
        employees=employees,
        ledger=ledger,
        orchestrator=orchestrator,
    )
