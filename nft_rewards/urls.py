from django.urls import path
from .views import NFTRewardsView, NFTRewardsStatusView, MyNFTsView

app_name = 'nft_rewards'

urlpatterns = [
    path('events/<int:event_id>/nft-rewards/', NFTRewardsView.as_view(), name='event-rewards'),
    path('events/<int:event_id>/nft-rewards/status/', NFTRewardsStatusView.as_view(), name='event-rewards-status'),
    path('nfts/mine/', MyNFTsView.as_view(), name='my-nfts'),
]
