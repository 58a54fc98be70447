import sys

from bundle_aggregator.cli import main

if __name__ == "__main__":
    # Defaults: aggregator on 8080, packager on 8081, webpack on 8082
    print("Starting Bundle Aggregator...")
    sys.exit(main())
