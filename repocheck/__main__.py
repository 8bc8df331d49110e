from repocheck.main import cli

cli()
