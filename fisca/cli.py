"""Fisca CLI tool (fisca)."""

import typer

app = typer.Typer(name="fisca", help="Fisca administration CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create every table that does not exist yet."""
    from fisca.db.session import init_db

    init_db()
    typer.echo("Tables created")


@db_app.command("seed")
def db_seed(
    reset: bool = typer.Option(False, "--reset", help="Wipe users, grants, roles and permissions first"),
    sample: bool = typer.Option(False, "--sample", help="Also load the sample organization"),
):
    """Seed roles, permissions and the admin user."""
    from fisca.core.exceptions import BootstrapFailure
    from fisca.db.session import SessionLocal, init_db
    from fisca.db.seeds.bootstrap import bootstrap
    from fisca.db.seeds.seed_sample_data import seed_sample_data

    if reset and not typer.confirm("This deletes every user and access grant. Continue?"):
        raise typer.Abort()

    init_db()
    db = SessionLocal()
    try:
        written = bootstrap(db, reset=reset)
        if sample:
            seed_sample_data(db)
    except BootstrapFailure as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo("Seeds applied" if written else "Roles already present, nothing seeded")


@app.command("roles")
def list_roles():
    """Print the role hierarchy and which roles each one may create."""
    from fisca.core.roles import ROLE_CATALOG, creatable_roles, role_rank

    for spec in sorted(ROLE_CATALOG, key=lambda s: s.rank):
        children = ", ".join(
            r.value for r in sorted(creatable_roles(spec.name), key=role_rank)
        ) or "-"
        typer.echo(f"  [{spec.rank}] {spec.name.value:<28} creates: {children}")


@app.command("levels")
def show_levels(
    acting: str = typer.Argument(..., help="Role of the user doing the assignment"),
    target: str = typer.Argument(..., help="Role being assigned"),
):
    """Print the levels ACTING may assign to a user with role TARGET."""
    from fisca.core.roles import assignable_levels, parse_role

    for name in (acting, target):
        if parse_role(name) is None:
            typer.echo(f"Unknown role '{name}'", err=True)
            raise typer.Exit(code=2)

    slots = assignable_levels(acting, target)
    if not slots:
        typer.echo("  (none)")
    for slot in slots:
        typer.echo(f"  {slot.level.value:<10} {'multiple' if slot.multiple else 'single'}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("fisca.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
