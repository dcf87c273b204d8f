from business_demography import cli

if __name__ == "__main__":
    cli.app()
