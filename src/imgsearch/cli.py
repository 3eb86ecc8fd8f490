import os
import sys
import typer
from typing import Optional
from imgsearch.config import settings
from imgsearch.logging import logger, get_run_id

app = typer.Typer(no_args_is_help=True)

@app.callback()
def main():
    """
    Image search CLI.
    """
    pass

@app.command(name="doctor")
def doctor():
    """
    Check configuration, storage and the embedding stack.
    """
    logger.info("Running doctor check...")

    failures: list[str] = []
    passed = 0

    print("\n🩺 imgsearch Doctor\n")

    # ── Check 1: Environment / Interpreter ──────────────────────────────────
    print("[Environment]")
    print(f"  Python: {sys.version.split()[0]}")
    print(f"  Run ID: {get_run_id()}")
    passed += 1

    # ── Check 2: Embedding configuration ────────────────────────────────────
    print("\n[Configuration]")
    print(f"  EMBEDDING_MODEL:             {settings.EMBEDDING_MODEL}")
    print(f"  EMBEDDING_DEVICE:            {settings.EMBEDDING_DEVICE}")
    print(f"  MAX_EMBEDDING_ATTEMPTS:      {settings.MAX_EMBEDDING_ATTEMPTS}")
    print(f"  EMBEDDING_INTERVAL_SECONDS:  {settings.EMBEDDING_INTERVAL_SECONDS}")
    if settings.EMBEDDING_DIM > 0:
        print(f"  EMBEDDING_DIM:               ✅ {settings.EMBEDDING_DIM}")
        passed += 1
    else:
        print(f"  EMBEDDING_DIM:               ❌ {settings.EMBEDDING_DIM}")
        failures.append("EMBEDDING_DIM must be a positive integer")

    # ── Check 3: Data directory ──────────────────────────────────────────────
    print("\n[Data Directory]")
    data_dir = settings.data_dir
    if data_dir.is_dir() and os.access(data_dir, os.W_OK):
        print(f"  {data_dir}/    ✅ Writable: {data_dir.absolute()}")
        passed += 1
    elif data_dir.exists():
        print(f"  {data_dir}/    ❌ Not writable")
        failures.append(f"{data_dir} is not writable — uploads and the database live there")
    else:
        print(f"  {data_dir}/    ❌ Missing: {data_dir.absolute()}")
        failures.append(f"{data_dir} not found — run `imgsearch db init`")

    # ── Check 4: Vector index ────────────────────────────────────────────────
    print("\n[Vector Index]")
    try:
        from imgsearch.infra.search.vector_sqlite import SqliteVecStore
        store = SqliteVecStore(settings.vec_db, dimension=settings.EMBEDDING_DIM)
        try:
            print(f"  {settings.vec_db}    ✅ {store.point_count()} vectors")
            passed += 1
        finally:
            store.close()
    except Exception as e:
        print(f"  {settings.vec_db}    ❌ {e}")
        failures.append(f"Vector index unusable: {e}")

    # ── Check 5: Model dependencies ──────────────────────────────────────────
    print("\n[Model]")
    try:
        import torch  # noqa: F401
        import transformers  # noqa: F401
        print("  torch / transformers:        ✅ Installed")
        passed += 1
    except ImportError:
        print("  torch / transformers:        ❌ Missing")
        failures.append("Install the `clip` extra: pip install 'imgsearch[clip]'")

    # ── Summary ──────────────────────────────────────────────────────────────
    total = passed + len(failures)
    print(f"\n{'─' * 50}")
    if failures:
        print(f"Result: {passed}/{total} checks passed\n")
        for msg in failures:
            print(f"  ❌ {msg}")
        print()
        raise typer.Exit(code=1)
    else:
        print(f"Result: {passed}/{total} checks passed — all good ✅")
        print()


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")

@db_app.command("init")
def init():
    """Initialize the database tables."""
    from imgsearch.db import init_db
    try:
        init_db()
        logger.info("Database initialized successfully.")
        print("✅ Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"❌ Failed: {e}")
        raise typer.Exit(code=1)


embeddings_app = typer.Typer(help="Embedding pipeline commands.")
app.add_typer(embeddings_app, name="embeddings")

@embeddings_app.command("run")
def run(
    until_done: bool = typer.Option(False, "--until-done", help="Keep going until nothing is eligible."),
):
    """Process pending embeddings in the foreground."""
    from imgsearch.db import init_db
    from imgsearch.runtime import get_runtime

    init_db()
    rt = get_runtime()
    load = getattr(rt.model, "load", None)
    if load is not None and not load():
        print("❌ Embedding model could not be loaded.")
        raise typer.Exit(code=1)

    while True:
        result = rt.pipeline.run_once()
        if result is None:
            print("⚠️  Pass skipped (already running or model not ready).")
            raise typer.Exit(code=1)
        print(
            f"Selected {result.selected}: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.remaining} remaining"
        )
        if not until_done or result.selected == 0 or result.succeeded == 0:
            break

@embeddings_app.command("stats")
def stats(owner: Optional[str] = typer.Option(None, "--owner", help="Scope to one owner.")):
    """Show embedding progress counts."""
    from imgsearch.db import init_db
    from imgsearch.runtime import get_runtime

    init_db()
    s = get_runtime().pipeline.stats(owner)
    scope = f" for {owner}" if owner else ""
    print(f"Embedding stats{scope}:")
    for key, value in s.as_dict().items():
        print(f"  {key:<11} {value}")

@embeddings_app.command("reset-stuck")
def reset_stuck(owner: Optional[str] = typer.Option(None, "--owner", help="Scope to one owner.")):
    """Move records stuck in `processing` back to `pending`."""
    from imgsearch.db import init_db
    from imgsearch.runtime import get_runtime

    init_db()
    count = get_runtime().pipeline.reset_stuck(owner)
    print(f"✅ Reset {count} record(s) to pending.")


if __name__ == "__main__":
    app()
