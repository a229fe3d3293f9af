from django.apps import AppConfig


class NftRewardsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'nft_rewards'
    verbose_name = 'CTF - NFT Rewards'
