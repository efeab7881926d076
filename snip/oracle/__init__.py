"""Oracle diagnostics: AWR, ASH, execution plans, PDBs and plain-language requests."""