from guild_keeper.clients.disc import run

if __name__ == "__main__":
    run()
