from atlas_data_mcp.mcp_server.server import main

if __name__ == "__main__":
    main()
