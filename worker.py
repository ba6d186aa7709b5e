# worker.py
from prefect import serve

from dairy_ledger.config import configure_logging
from dairy_ledger.generate_data import run_bulk_generation, run_nightly_generation
from dairy_ledger.processing import run_csv_pipeline

if __name__ == "__main__":
    configure_logging()

    # 1. Import an uploaded milk ledger CSV into the database.
    csv_processor = run_csv_pipeline.to_deployment(
        name="csv-processor",
        tags=["csv"],
        description="Imports uploaded milk ledger CSVs in the background."
    )

    # 2. Automatic full-day new data.
    nightly_generator = run_nightly_generation.to_deployment(
        name="daily-append-job",
        tags=["generation", "cron"],
        cron="1 0 * * *",
        description="Appends yesterday's dummy milk transactions."
    )

    # 3. On-demand bulk generation
    bulk_generator = run_bulk_generation.to_deployment(
        name="bulk-generation-job",
        tags=["generation", "manual"],
        description="Generates a custom number of milk transactions and uploads them to the DB."
    )

    serve(csv_processor, nightly_generator, bulk_generator, limit=1, pause_on_shutdown=False)
