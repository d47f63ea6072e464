from statuspage_gating.main import main

main()
