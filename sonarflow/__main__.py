from sonarflow.cli import cli

cli()
