from sitelist.scraper.run import main

if __name__ == "__main__":
    # Same as the installed ``sitelist`` console script.
    raise SystemExit(main())
