from assetledger import create_app

app = create_app()
