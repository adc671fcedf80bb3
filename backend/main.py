from typing import List, Optional, Dict, Any
import os
import time
from fastapi import Depends, FastAPI, HTTPException, Query, UploadFile, File
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel

from services.address_summary import build_address_summary
from services.config import FlowConfig, load_config
from services.day_index import (
    day_index_at_time,
    nearest_day_from_date,
    transactions_for_day,
)
from services.errors import FlowError
from services.ingestion import (
    Transaction,
    filter_transactions,
    load_csv_directory,
    parse_export,
    parse_transaction_data,
)
from services.json_formatter import build_final_json, load_report, report_path
from services.logger import get_logger
from services.network import calculate_network_data
from services.time_series import compute_time_series

logger = get_logger(__name__)

app = FastAPI(title="STX Flow API", version="0.1.0")

# Add CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_config() -> FlowConfig:
    """Request-scoped configuration; tests override this dependency."""
    return load_config()


class ExportError(BaseModel):
    """Error model for an export that could not be read."""
    filename: str
    error: str


class ExportValidationResponse(BaseModel):
    """Response model for CSV export validation."""
    success: bool
    message: str
    total_files: int
    total_transactions: int
    transactions: List[Transaction] = []
    errors: List[ExportError] = []


class DayIndexResponse(BaseModel):
    index: int
    timestamp: int


class DayTransactionsResponse(BaseModel):
    index: int
    timestamp: int
    transactions: List[Transaction]


class NearestDayResponse(BaseModel):
    requested: Optional[str]
    timestamp: int
    index: int


@app.get("/")
def read_root() -> dict[str, str]:
    return {"message": "STX flow backend is running"}


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


async def _read_uploads(files: List[UploadFile]) -> List[tuple[str, str]]:
    csv_files = []
    for file in files:
        if not file.filename or not file.filename.endswith(".csv"):
            raise HTTPException(status_code=400, detail=f"File must be a CSV: {file.filename}")
        content = await file.read()
        try:
            csv_files.append((file.filename, content.decode("utf-8")))
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="File encoding not supported. Please use UTF-8")
    return csv_files


@app.post("/upload-csv", response_model=ExportValidationResponse)
async def upload_csv(
    files: List[UploadFile] = File(...),
    config: FlowConfig = Depends(get_config),
) -> ExportValidationResponse:
    """
    Upload and validate one or more ``transactions-<OWNER>.csv`` exports.

    Returns the filtered, chronologically sorted transaction log.
    """
    csv_files = await _read_uploads(files)

    legs: List[Transaction] = []
    readable = 0
    errors = []
    for name, content in csv_files:
        try:
            legs.extend(parse_export(name, content))
            readable += 1
        except FlowError as e:
            errors.append(ExportError(filename=name, error=str(e)))

    transactions = filter_transactions(legs, config)

    message = f"Successfully processed {len(transactions)} transactions from {readable} files"
    if errors:
        message += f" with {len(errors)} errors"

    return ExportValidationResponse(
        success=not errors,
        message=message,
        total_files=len(csv_files),
        total_transactions=len(transactions),
        transactions=transactions,
        errors=errors,
    )


# ---------------------------------------------------------------------------
# Full Analysis & Report Endpoints
# ---------------------------------------------------------------------------

def _load_existing_transactions(config: FlowConfig) -> List[Transaction]:
    """Load and filter transactions from the exports in the data directory."""
    if not os.path.isdir(config.data_dir):
        raise HTTPException(status_code=404, detail=f"Data directory not found: {config.data_dir}")
    csv_files = load_csv_directory(config.data_dir)
    if not csv_files:
        raise HTTPException(status_code=404, detail="No transaction exports found")
    return parse_transaction_data(csv_files, config)


def _initial_balances(tracked: set[str], config: FlowConfig) -> Dict[str, float]:
    """Seed the endowment contract with its pre-funded balance."""
    return {
        address: config.initial_endowment
        for address in tracked
        if config.is_reward_address(address)
    }


def _run_pipeline(transactions: List[Transaction], config: FlowConfig) -> Dict[str, Any]:
    """
    Execute the full pipeline and build the JSON report.

    Returns the report dict (also saved to ``<output_dir>/latest_report.json``).
    """
    t_start = time.perf_counter()

    # 1. Aggregate the address universe
    network_data = calculate_network_data(transactions, config)
    tracked = network_data.tracked_addresses

    # 2. Day-bucketed balances
    series = compute_time_series(
        transactions,
        [node.id for node in network_data.nodes],
        initial_balances=_initial_balances(tracked, config),
        config=config,
    )

    # 3. Address table
    address_summary = build_address_summary(network_data, transactions, config)

    t_end = time.perf_counter()

    # 4. Build & save the report
    return build_final_json(
        transactions=transactions,
        network_data=network_data,
        series=series,
        address_summary=address_summary,
        processing_time_seconds=t_end - t_start,
        output_dir=config.output_dir,
        config=config,
    )


def _analyze(transactions: List[Transaction], config: FlowConfig) -> Dict[str, Any]:
    if not transactions:
        raise HTTPException(status_code=400, detail="No valid transactions to analyze")
    try:
        return _run_pipeline(transactions, config)
    except FlowError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/analyze")
async def analyze(
    files: Optional[List[UploadFile]] = File(None),
    config: FlowConfig = Depends(get_config),
) -> Dict[str, Any]:
    """
    Run the full pipeline and return the JSON report.

    - If CSV exports are uploaded, they are used as the data source.
    - If no file is provided, the exports in the data directory are used.
    """
    try:
        if files:
            csv_files = await _read_uploads(files)
            transactions = parse_transaction_data(csv_files, config)
        else:
            transactions = _load_existing_transactions(config)
        return _analyze(transactions, config)

    except HTTPException:
        raise
    except FlowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("analysis_failed")
        raise HTTPException(status_code=500, detail=f"Analysis error: {str(e)}")


@app.get("/analyze/existing")
async def analyze_existing(config: FlowConfig = Depends(get_config)) -> Dict[str, Any]:
    """Run the full pipeline over the exports in the data directory."""
    try:
        return _analyze(_load_existing_transactions(config), config)
    except HTTPException:
        raise
    except FlowError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("analysis_failed")
        raise HTTPException(status_code=500, detail=f"Analysis error: {str(e)}")


# ---------------------------------------------------------------------------
# Playback queries over the latest report
# ---------------------------------------------------------------------------

def _latest_report(config: FlowConfig) -> Dict[str, Any]:
    report = load_report(config.output_dir)
    if report is None:
        raise HTTPException(
            status_code=404,
            detail="No report available. Run POST /analyze first.",
        )
    return report


@app.get("/day-index", response_model=DayIndexResponse)
def get_day_index(
    t: int = Query(..., description="Timestamp in milliseconds since epoch"),
    config: FlowConfig = Depends(get_config),
) -> DayIndexResponse:
    """Day bucket containing timestamp ``t``."""
    day_groups = _latest_report(config)["day_groups"]
    if not day_groups:
        raise HTTPException(status_code=404, detail="Report has no day groups")
    index = day_index_at_time(day_groups, t)
    return DayIndexResponse(index=index, timestamp=day_groups[index])


@app.get("/day/{index}/transactions", response_model=DayTransactionsResponse)
def get_day_transactions(
    index: int,
    config: FlowConfig = Depends(get_config),
) -> DayTransactionsResponse:
    """Transactions that fall inside day bucket ``index``."""
    report = _latest_report(config)
    day_groups = report["day_groups"]
    if index < 0 or index >= len(day_groups):
        raise HTTPException(status_code=404, detail=f"Day index out of range: {index}")
    transactions = [Transaction(**tx) for tx in report["transactions"]]
    return DayTransactionsResponse(
        index=index,
        timestamp=day_groups[index],
        transactions=transactions_for_day(day_groups, index, transactions, config),
    )


@app.get("/nearest-day", response_model=NearestDayResponse)
def get_nearest_day(
    date: Optional[str] = Query(None, description="Calendar date, e.g. 2025-09-20"),
    config: FlowConfig = Depends(get_config),
) -> NearestDayResponse:
    """Resolve a deep-link date to a playback timestamp."""
    day_groups = _latest_report(config)["day_groups"]
    timestamp = nearest_day_from_date(date, day_groups, config)
    return NearestDayResponse(
        requested=date,
        timestamp=timestamp,
        index=day_index_at_time(day_groups, timestamp),
    )


@app.get("/download-report")
async def download_report(config: FlowConfig = Depends(get_config)) -> FileResponse:
    """
    Download the latest flow report as a JSON file.

    Returns ``<output_dir>/latest_report.json`` with the download filename
    ``stx_flow_report.json``.
    """
    path = report_path(config.output_dir)
    if not os.path.exists(path):
        raise HTTPException(
            status_code=404,
            detail="No report available. Run POST /analyze first.",
        )
    return FileResponse(
        path=path,
        media_type="application/json",
        filename="stx_flow_report.json",
    )


@app.get("/transactions/sample")
def get_sample_csv() -> dict:
    """Return the export layout the ingestion step reads."""
    return {
        "filename_format": "transactions-<OWNER_ADDRESS>.csv",
        "columns_used": {
            "1": "burn_date",
            "2": "in_symbol",
            "3": "in_amount",
            "4": "out_symbol",
            "5": "out_amount",
            "12": "tx_id",
            "16": "sender",
            "17": "recipient",
        },
        "example_row": {
            "burn_date": "2025-09-20T14:30:00.000Z",
            "in_symbol": "STX",
            "in_amount": "250000",
            "sender": "SP000000000000000000002Q6VF78.sip-031",
            "tx_id": "0x8a1f...",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
